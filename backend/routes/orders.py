"""
Order endpoints - order creation plus the admin order dashboard.

POST /api/orders is what HttpOrderPersistence calls; the admin routes
list orders, summarize them and move them through pending -> processing
-> completed.
"""

import logging

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Order
from deps import Pagination, pagination_params, require_admin
from domain.checkout import OrderPayload
from domain.enums import OrderStatus
from domain.errors import NotFoundError
from domain.responses import paginated_response, success_response
from middleware.rate_limit import rate_limit
from models import OrderStatusUpdateRequest
from services import order_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["orders"])


def _order_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "status": order.status,
        "customer_type": order.customer_type,
        "customer_data": order_service.decode_customer_data(order),
        "total_amount": float(order.total_amount),
        "total_quantity": order.total_quantity,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
        "items": [
            {
                "product_id": i.product_id,
                "product_name": i.product_name,
                "price": float(i.price),
                "quantity": i.quantity,
            }
            for i in order.items
        ],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderPayload,
    response: Response,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit()),
):
    """
    Store an order.

    A repeated requestToken returns the stored order with 200 instead of 201.
    """
    order, created = await order_service.create_order(db, payload)
    await db.commit()
    if not created:
        response.status_code = status.HTTP_200_OK
    return success_response({"order": _order_dict(order)}, meta={"created": created})


@router.get("")
async def list_orders(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    page: Pagination = Depends(pagination_params),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders = await order_service.list_orders(
        db, status=status_filter, limit=page["limit"], offset=page["offset"]
    )
    total = await order_service.count_orders(db, status=status_filter)
    return paginated_response(
        [_order_dict(o) for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/summary")
async def get_order_summary(
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    summary = await order_service.order_summary(db)
    summary["total_revenue"] = float(summary["total_revenue"])
    return success_response(summary)


@router.get("/{order_id}")
async def get_order(
    order_id: int = Path(..., gt=0),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order(db, order_id=order_id)
    if not order:
        raise NotFoundError("Order", str(order_id))
    return success_response({"order": _order_dict(order)})


@router.patch("/{order_id}/status")
async def update_order_status(
    request: OrderStatusUpdateRequest,
    order_id: int = Path(..., gt=0),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.update_order_status(db, order_id=order_id, status=request.status)
    await db.commit()
    return success_response({"order": _order_dict(order)})
