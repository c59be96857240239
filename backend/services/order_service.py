"""
Order service - server-side order creation and the admin order lifecycle.

create_order() is the authoritative store behind POST /api/orders and the
in-process DatabaseOrderPersistence. It re-checks the rules the client
already applied (pincode allow-list, club minimum) because the client
cannot be trusted, and verifies the item snapshot against the catalog.

Idempotent:
  - A payload whose request_token already exists returns the stored order
    instead of creating a second one.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Order, OrderItem, Product
from domain.checkout import OrderPayload
from domain.constants import MONEY_PLACES
from domain.enums import CustomerCategory, OrderStatus, ORDER_STATUS_SEQUENCE
from domain.errors import ConflictError, NotFoundError, ValidationError
from services.validation_service import (
    PINCODE_FIELD,
    bulk_minimum_message,
    pincode_message,
)
from utils.validators import is_valid_pincode

logger = logging.getLogger(__name__)

_CENTS = Decimal(MONEY_PLACES)


async def get_order_by_token(db: AsyncSession, request_token: str) -> Order | None:
    res = await db.execute(select(Order).where(Order.request_token == request_token))
    return res.scalar_one_or_none()


async def _check_business_rules(db: AsyncSession, payload: OrderPayload) -> None:
    """Raise ValidationError for the first server-side rule the payload breaks."""
    if payload.category == CustomerCategory.LOCAL_RESIDENT:
        if not is_valid_pincode(payload.customer.pincode, settings.valid_pincodes_list):
            raise ValidationError(pincode_message(), field=PINCODE_FIELD)

    if payload.category == CustomerCategory.BULK_CLUB:
        if payload.total_quantity < settings.bulk_minimum_quantity:
            raise ValidationError(bulk_minimum_message(settings.bulk_minimum_quantity), field="cart")

    product_ids = [i.product_id for i in payload.items]
    if len(set(product_ids)) != len(product_ids):
        raise ValidationError("Each product may appear only once per order", field="items")

    quantity = sum(i.quantity for i in payload.items)
    amount = sum((i.price * i.quantity for i in payload.items), Decimal("0")).quantize(_CENTS)
    if quantity != payload.total_quantity or amount != payload.total_amount.quantize(_CENTS):
        raise ValidationError("Order totals do not match the items", field="items")

    res = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {p.id: p for p in res.scalars().all()}
    for item in payload.items:
        p = products.get(item.product_id)
        if p is None:
            raise ValidationError(f"{item.product_name} is no longer available", field="items")
        if Decimal(p.price).quantize(_CENTS) != item.price.quantize(_CENTS):
            raise ValidationError(f"Price of {p.name} has changed; refresh your cart", field="items")


async def create_order(db: AsyncSession, payload: OrderPayload) -> tuple[Order, bool]:
    """
    Persist a validated checkout.

    Returns:
        (order, created) - created is False when request_token matched an
        existing order.
    """
    if payload.request_token:
        existing = await get_order_by_token(db, payload.request_token)
        if existing:
            logger.info(f"Duplicate submission for order {existing.id} (token reused)")
            return existing, False

    await _check_business_rules(db, payload)

    order = Order(
        customer_type=payload.category.value,
        customer_data=json.dumps(payload.customer.customer_data()),
        total_amount=payload.total_amount.quantize(_CENTS),
        total_quantity=payload.total_quantity,
        status=OrderStatus.PENDING.value,
        request_token=payload.request_token,
        created_at=datetime.utcnow(),
        items=[
            OrderItem(
                product_id=i.product_id,
                product_name=i.product_name,
                price=i.price,
                quantity=i.quantity,
            )
            for i in payload.items
        ],
    )
    db.add(order)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent request with the same token won the insert
        await db.rollback()
        existing = await get_order_by_token(db, payload.request_token) if payload.request_token else None
        if existing is None:
            raise
        return existing, False

    logger.info(
        f"Order {order.id} created: {payload.category.value}, "
        f"{payload.total_quantity} items, total {order.total_amount}"
    )
    return order, True


async def get_order(db: AsyncSession, *, order_id: int) -> Order | None:
    res = await db.execute(select(Order).where(Order.id == order_id))
    return res.scalar_one_or_none()


async def list_orders(
    db: AsyncSession,
    *,
    status: OrderStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Order]:
    query = select(Order)
    if status is not None:
        query = query.where(Order.status == status.value)
    res = await db.execute(
        query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset)
    )
    return res.scalars().all()


async def count_orders(db: AsyncSession, *, status: OrderStatus | None = None) -> int:
    query = select(func.count(Order.id))
    if status is not None:
        query = query.where(Order.status == status.value)
    res = await db.execute(query)
    return res.scalar_one()


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Forward-only: pending -> processing -> completed (skipping ahead allowed)."""
    return ORDER_STATUS_SEQUENCE.index(new) > ORDER_STATUS_SEQUENCE.index(current)


async def update_order_status(db: AsyncSession, *, order_id: int, status: OrderStatus) -> Order:
    """
    Move an order along its lifecycle.

    Setting the current status again is a no-op. Moving backwards (or out
    of completed) raises ConflictError.
    """
    order = await get_order(db, order_id=order_id)
    if not order:
        raise NotFoundError("Order", str(order_id))

    current = OrderStatus(order.status)
    if current == status:
        return order
    if not can_transition(current, status):
        raise ConflictError(
            f"Cannot move order {order_id} from {current.value} to {status.value}",
            details={"current": current.value, "requested": status.value},
        )

    order.status = status.value
    order.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Order {order_id} status {current.value} -> {status.value}")
    return order


async def order_summary(db: AsyncSession) -> dict:
    """Admin dashboard numbers: order count, revenue, pending orders."""
    res = await db.execute(
        select(func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
    )
    total_orders, revenue = res.one()
    pending = await count_orders(db, status=OrderStatus.PENDING)
    return {
        "total_orders": total_orders,
        "total_revenue": Decimal(str(revenue)).quantize(_CENTS),
        "pending_orders": pending,
    }


def decode_customer_data(order: Order) -> dict:
    try:
        return json.loads(order.customer_data or "{}")
    except json.JSONDecodeError:
        logger.warning(f"Order {order.id} has unreadable customer_data")
        return {}
