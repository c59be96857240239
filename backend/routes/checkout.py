"""
Checkout endpoints - one anonymous session per shopper.

    POST   /api/checkout/sessions                          -> new session
    GET    /api/checkout/sessions/{id}                     -> cart + category
    POST   /api/checkout/sessions/{id}/cart/items          -> add product
    POST   /api/checkout/sessions/{id}/cart/refresh        -> re-read catalog prices
    PATCH  /api/checkout/sessions/{id}/cart/items/{pid}    -> set quantity
    DELETE /api/checkout/sessions/{id}/cart/items/{pid}    -> remove line
    PUT    /api/checkout/sessions/{id}/category            -> choose category
    POST   /api/checkout/sessions/{id}/validate-field      -> check one field
    POST   /api/checkout/sessions/{id}/validate            -> check the form
    POST   /api/checkout/sessions/{id}/submit              -> place the order
"""

import logging

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import get_checkout_session, get_order_persistence, get_session_registry
from domain.errors import ConflictError, PersistenceError, ValidationError, ValidationFailed
from domain.responses import success_response
from middleware.rate_limit import rate_limit
from models import (
    CartItemRequest,
    CartQuantityRequest,
    CategoryRequest,
    CheckoutRequest,
    FieldCheckRequest,
)
from services.catalog_service import DatabaseCatalog
from services.checkout_service import (
    CheckoutSession,
    SessionRegistry,
    details_for,
    refresh_cart,
    resolve_field_name,
)
from services.persistence_service import GENERIC_FAILURE, OrderPersistence

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/checkout", tags=["checkout"])


def _session_view(session: CheckoutSession) -> dict:
    category = session.category
    cart = session.cart
    return {
        "session_id": session.id,
        "category": category.value if category else None,
        "cart": {
            "items": [
                {
                    "product_id": line.product.id,
                    "name": line.product.name,
                    "price": float(line.product.price),
                    "image_url": line.product.image_url,
                    "quantity": line.quantity,
                    "line_total": float(line.line_total),
                }
                for line in cart.lines
            ],
            "total_items": cart.total_items(),
            "total_price": float(cart.total_price()),
        },
    }


# ── Sessions ────────────────────────────────────────────────────────

@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(registry: SessionRegistry = Depends(get_session_registry)):
    session = registry.create()
    logger.info(f"Checkout session {session.id[:8]} opened")
    return success_response(_session_view(session))


@router.get("/sessions/{session_id}")
async def get_session(session: CheckoutSession = Depends(get_checkout_session)):
    return success_response(_session_view(session))


@router.delete("/sessions/{session_id}")
async def close_session(
    session: CheckoutSession = Depends(get_checkout_session),
    registry: SessionRegistry = Depends(get_session_registry),
):
    registry.discard(session.id)
    return success_response({"session_id": session.id, "closed": True})


# ── Cart ────────────────────────────────────────────────────────────

@router.post("/sessions/{session_id}/cart/items")
async def add_cart_item(
    request: CartItemRequest,
    session: CheckoutSession = Depends(get_checkout_session),
    db: AsyncSession = Depends(get_db),
):
    product = await DatabaseCatalog(db).get_product(request.product_id)
    session.cart.add_item(product, request.quantity)
    return success_response(_session_view(session))


@router.patch("/sessions/{session_id}/cart/items/{product_id}")
async def update_cart_item(
    request: CartQuantityRequest,
    product_id: int = Path(..., gt=0),
    session: CheckoutSession = Depends(get_checkout_session),
):
    """Set a line's quantity; zero or less removes it. Unknown products leave the cart as is."""
    changed = session.cart.update_quantity(product_id, request.quantity)
    return success_response(_session_view(session), meta={"changed": changed})


@router.delete("/sessions/{session_id}/cart/items/{product_id}")
async def remove_cart_item(
    product_id: int = Path(..., gt=0),
    session: CheckoutSession = Depends(get_checkout_session),
):
    changed = session.cart.remove_item(product_id)
    return success_response(_session_view(session), meta={"changed": changed})


@router.post("/sessions/{session_id}/cart/refresh")
async def refresh_session_cart(
    session: CheckoutSession = Depends(get_checkout_session),
    db: AsyncSession = Depends(get_db),
):
    """Re-read every line from the catalog; lines whose product is gone are dropped."""
    changes = await refresh_cart(session.cart, DatabaseCatalog(db))
    return success_response(_session_view(session), meta=changes)


@router.delete("/sessions/{session_id}/cart")
async def clear_cart(session: CheckoutSession = Depends(get_checkout_session)):
    session.cart.clear()
    return success_response(_session_view(session))


# ── Customer category ───────────────────────────────────────────────

@router.put("/sessions/{session_id}/category")
async def select_category(
    request: CategoryRequest,
    session: CheckoutSession = Depends(get_checkout_session),
):
    session.select_category(request.category)
    return success_response(_session_view(session))


@router.delete("/sessions/{session_id}/category")
async def clear_category(session: CheckoutSession = Depends(get_checkout_session)):
    session.clear_category()
    return success_response(_session_view(session))


# ── Validation ──────────────────────────────────────────────────────

@router.post("/sessions/{session_id}/validate-field")
async def validate_field(
    request: FieldCheckRequest,
    session: CheckoutSession = Depends(get_checkout_session),
):
    category = session.require_category()
    field = resolve_field_name(category, request.field)
    try:
        message = session.validate_field(field, request.value)
    except ValueError as e:
        raise ValidationError(str(e), field=request.field)
    return success_response({"field": field, "valid": message is None, "error": message})


@router.post("/sessions/{session_id}/validate")
async def validate_checkout(
    request: CheckoutRequest,
    session: CheckoutSession = Depends(get_checkout_session),
):
    details = details_for(session.require_category(), request.customer)
    result = session.validate(details)
    return success_response({"valid": result.is_valid, "field_errors": result.field_errors})


# ── Submission ──────────────────────────────────────────────────────

@router.post("/sessions/{session_id}/submit", status_code=status.HTTP_201_CREATED)
async def submit_order(
    request: CheckoutRequest,
    session: CheckoutSession = Depends(get_checkout_session),
    persistence: OrderPersistence = Depends(get_order_persistence),
    _rate=Depends(rate_limit()),
):
    details = details_for(session.require_category(), request.customer)
    result = await session.submit(details, persistence)

    if result.success:
        return success_response({"receipt": result.receipt.model_dump(mode="json", by_alias=True)})
    if result.error_code == "validation_failed":
        raise ValidationFailed(result.field_errors)
    if result.error_code == "submission_in_progress":
        raise ConflictError(result.message)
    raise PersistenceError(result.message or GENERIC_FAILURE)
