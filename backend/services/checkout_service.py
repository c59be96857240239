"""
Checkout service - customer classification and order submission.

A CheckoutSession owns everything one shopper's checkout needs: the Cart,
the key-value storage holding the chosen customer category, and the
bookkeeping that keeps a submission at-most-once from the client side.

Flow:
    1) select_category()  -> category stored under "customerType"
    2) validate()         -> field errors for the current form values
    3) submit()           -> validate again, build OrderPayload, call persistence
                             success: cart + category cleared, receipt returned
                             failure: cart + category untouched for retry

Duplicate protection:
    - submit() while another submit() is awaiting persistence is rejected
    - each distinct payload gets one request token, reused across retries,
      so the order store can return the existing order instead of a copy
"""
import asyncio
import hashlib
import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, Protocol

from pydantic import ValidationError as ModelValidationError

from config import settings
from domain.cart import Cart
from domain.checkout import (
    DETAILS_MODELS,
    CustomerDetails,
    OrderLineSnapshot,
    OrderPayload,
    SubmissionResult,
    ValidationResult,
)
from domain.constants import CATEGORY_STORAGE_KEY
from domain.enums import CustomerCategory
from domain.errors import NotFoundError, PersistenceError, PreconditionError, ValidationFailed
from services import validation_service
from services.persistence_service import GENERIC_FAILURE, OrderPersistence

logger = logging.getLogger(__name__)

EMPTY_CART_MESSAGE = "Your cart is empty"


# ════════════════════════════════════════════════════════════════════
# Session storage
# ════════════════════════════════════════════════════════════════════

class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Process-local storage; lives as long as its session."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


# ════════════════════════════════════════════════════════════════════
# Payload
# ════════════════════════════════════════════════════════════════════

def build_order_payload(
    category: CustomerCategory,
    details: CustomerDetails,
    cart: Cart,
    request_token: Optional[str] = None,
) -> OrderPayload:
    """Snapshot the cart into an order payload for `category`."""
    return OrderPayload(
        category=category,
        customer=details,
        items=[
            OrderLineSnapshot(
                product_id=line.product.id,
                product_name=line.product.name,
                price=line.product.price,
                quantity=line.quantity,
            )
            for line in cart.lines
        ],
        total_amount=cart.total_price(),
        total_quantity=cart.total_items(),
        request_token=request_token,
    )


def details_for(category: CustomerCategory, fields: dict[str, str]) -> CustomerDetails:
    """
    Build the details variant for `category` from raw form values.

    Raises ValidationFailed for keys that are not fields of the category.
    """
    category = CustomerCategory(category)
    model = DETAILS_MODELS[category]
    try:
        return model.model_validate({**fields, "category": category.value})
    except ModelValidationError as e:
        errors = {}
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "customer"
            if err["type"] == "extra_forbidden":
                errors[field] = f"Not a field of {category.value} orders"
            else:
                errors[field] = err["msg"]
        raise ValidationFailed(errors)


def resolve_field_name(category: CustomerCategory, key: str) -> str:
    """Map a form name (clubName) to its attribute name (club_name)."""
    model = DETAILS_MODELS[CustomerCategory(category)]
    for name, info in model.model_fields.items():
        if key == info.alias:
            return name
    return key


async def refresh_cart(cart: Cart, catalog) -> dict[str, list[int]]:
    """
    Re-resolve every cart line through `catalog` (anything with an async
    get_product(id) raising NotFoundError, e.g. DatabaseCatalog).

    Used after the order store reports a changed price: lines pick up the
    current name and price, lines for deleted products are removed.
    """
    repriced: list[int] = []
    removed: list[int] = []
    for line in cart.lines:
        product_id = line.product.id
        try:
            product = await catalog.get_product(product_id)
        except NotFoundError:
            cart.remove_item(product_id)
            removed.append(product_id)
            continue
        if cart.replace_product(product):
            repriced.append(product_id)
    if repriced or removed:
        logger.info(f"Cart refreshed: repriced {repriced}, removed {removed}")
    return {"repriced": repriced, "removed": removed}


def _fingerprint(payload: OrderPayload) -> str:
    body = payload.model_dump(mode="json", exclude={"request_token"})
    return hashlib.sha256(json.dumps(body, sort_keys=True).encode()).hexdigest()


# ════════════════════════════════════════════════════════════════════
# Checkout session
# ════════════════════════════════════════════════════════════════════

class CheckoutSession:
    """One shopper's cart, category selection and submission state."""

    def __init__(
        self,
        session_id: Optional[str] = None,
        storage: Optional[KeyValueStore] = None,
        cart: Optional[Cart] = None,
    ):
        self.id = session_id or uuid.uuid4().hex
        self.cart = cart if cart is not None else Cart()
        self.storage = storage if storage is not None else InMemoryKeyValueStore()
        self.created_at = datetime.utcnow()
        self.last_seen_at = self.created_at
        self._submitting = False
        self._request_token: Optional[str] = None
        self._token_fingerprint: Optional[str] = None

    def touch(self) -> None:
        self.last_seen_at = datetime.utcnow()

    @property
    def submitting(self) -> bool:
        return self._submitting

    # ── Customer classifier ─────────────────────────────────────────

    def select_category(self, category: CustomerCategory) -> CustomerCategory:
        category = CustomerCategory(category)
        self.storage.set(CATEGORY_STORAGE_KEY, category.value)
        logger.debug(f"Session {self.id[:8]} category -> {category.value}")
        return category

    @property
    def category(self) -> Optional[CustomerCategory]:
        raw = self.storage.get(CATEGORY_STORAGE_KEY)
        if raw is None:
            return None
        try:
            return CustomerCategory(raw)
        except ValueError:
            logger.warning(f"Discarding unknown stored category {raw!r}")
            self.storage.remove(CATEGORY_STORAGE_KEY)
            return None

    def clear_category(self) -> None:
        self.storage.remove(CATEGORY_STORAGE_KEY)

    def require_category(self) -> CustomerCategory:
        category = self.category
        if category is None:
            raise PreconditionError()
        return category

    # ── Validation ──────────────────────────────────────────────────

    def validate(self, details: CustomerDetails) -> ValidationResult:
        return validation_service.validate(self.require_category(), details, self.cart)

    def validate_field(self, field: str, value: Optional[str]) -> Optional[str]:
        return validation_service.validate_field(self.require_category(), field, value)

    # ── Submission ──────────────────────────────────────────────────

    def _token_for(self, payload: OrderPayload) -> str:
        fingerprint = _fingerprint(payload)
        if self._request_token is None or fingerprint != self._token_fingerprint:
            self._request_token = uuid.uuid4().hex
            self._token_fingerprint = fingerprint
        return self._request_token

    async def submit(
        self,
        details: CustomerDetails,
        persistence: OrderPersistence,
        *,
        timeout: Optional[float] = None,
    ) -> SubmissionResult:
        """
        Validate and persist the order.

        Raises:
            PreconditionError: no customer category selected

        Returns:
            SubmissionResult - ok(receipt), validation_failed(field_errors),
            in_progress() while another submit is awaiting persistence,
            or submission_failed(message).
        """
        category = self.require_category()

        if self._submitting:
            logger.warning(f"Session {self.id[:8]}: submit while a submission is in flight")
            return SubmissionResult.in_progress()

        errors = dict(validation_service.validate(category, details, self.cart).field_errors)
        if self.cart.is_empty():
            errors.setdefault(validation_service.CART_FIELD, EMPTY_CART_MESSAGE)
        if errors:
            return SubmissionResult.validation_failed(errors)

        payload = build_order_payload(category, details, self.cart)
        payload.request_token = self._token_for(payload)
        limit = settings.order_submit_timeout_seconds if timeout is None else timeout

        self._submitting = True
        try:
            receipt = await asyncio.wait_for(persistence.create_order(payload), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning(f"Session {self.id[:8]}: order submission timed out after {limit}s")
            return SubmissionResult.submission_failed("Order service timed out. Please try again.")
        except PersistenceError as e:
            return SubmissionResult.submission_failed(e.message)
        except Exception as e:
            logger.error(f"Session {self.id[:8]}: unexpected submission error: {e}", exc_info=True)
            return SubmissionResult.submission_failed(GENERIC_FAILURE)
        finally:
            self._submitting = False

        self.cart.clear()
        self.clear_category()
        self._request_token = None
        self._token_fingerprint = None
        logger.info(f"Session {self.id[:8]}: order {receipt.order_id} submitted")
        return SubmissionResult.ok(receipt)


# ════════════════════════════════════════════════════════════════════
# Session registry
# ════════════════════════════════════════════════════════════════════

class SessionRegistry:
    """Checkout sessions keyed by id, expired after a period of inactivity."""

    def __init__(self, ttl_minutes: Optional[int] = None):
        self.ttl = timedelta(minutes=ttl_minutes or settings.checkout_session_ttl_minutes)
        self._sessions: dict[str, CheckoutSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> CheckoutSession:
        self.purge_expired()
        session = CheckoutSession()
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> CheckoutSession:
        session = self._sessions.get(session_id)
        if session is None or self._expired(session, datetime.utcnow()):
            self._sessions.pop(session_id, None)
            raise NotFoundError("Checkout session", session_id)
        session.touch()
        return session

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def _expired(self, session: CheckoutSession, now: datetime) -> bool:
        return now - session.last_seen_at > self.ttl

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.utcnow()
        stale = [
            sid for sid, s in self._sessions.items()
            if self._expired(s, now) and not s.submitting
        ]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info(f"Purged {len(stale)} idle checkout session(s)")
        return len(stale)


# Global registry instance (overridable through deps.get_session_registry)
_registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return _registry
