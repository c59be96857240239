"""
Tests for the checkout workflow.

Tests: category selection and storage, submit() outcomes, duplicate
protection (in-flight guard and request token reuse), session registry.
"""
import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from domain.checkout import BulkClubDetails, LocalResidentDetails, OrderReceipt
from domain.constants import CATEGORY_STORAGE_KEY
from domain.enums import CustomerCategory
from domain.errors import NotFoundError, PersistenceError, PreconditionError, ValidationFailed
from services.checkout_service import (
    CheckoutSession,
    InMemoryKeyValueStore,
    SessionRegistry,
    build_order_payload,
    details_for,
    refresh_cart,
    resolve_field_name,
)


class FakePersistence:
    """Records payloads; fails or stalls on demand."""

    def __init__(self, error: Exception | None = None, delay: float = 0):
        self.payloads = []
        self.error = error
        self.delay = delay

    async def create_order(self, payload):
        self.payloads.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return OrderReceipt(
            order_id=len(self.payloads),
            total_amount=payload.total_amount,
            total_quantity=payload.total_quantity,
        )


def _resident_session(product, form, quantity=1) -> tuple[CheckoutSession, LocalResidentDetails]:
    session = CheckoutSession()
    session.cart.add_item(product, quantity)
    session.select_category(CustomerCategory.LOCAL_RESIDENT)
    return session, LocalResidentDetails(**form)


class TestCategory:

    @pytest.mark.unit
    def test_selection_is_stored(self):
        storage = InMemoryKeyValueStore()
        session = CheckoutSession(storage=storage)
        session.select_category(CustomerCategory.BULK_CLUB)
        assert storage.get(CATEGORY_STORAGE_KEY) == "bulk-club"
        assert session.category == CustomerCategory.BULK_CLUB

    @pytest.mark.unit
    def test_stored_selection_survives_new_session_object(self):
        storage = InMemoryKeyValueStore()
        CheckoutSession(storage=storage).select_category("local-resident")
        assert CheckoutSession(storage=storage).category == CustomerCategory.LOCAL_RESIDENT

    @pytest.mark.unit
    def test_unknown_stored_value_discarded(self):
        storage = InMemoryKeyValueStore()
        storage.set(CATEGORY_STORAGE_KEY, "wholesale")
        session = CheckoutSession(storage=storage)
        assert session.category is None
        assert storage.get(CATEGORY_STORAGE_KEY) is None

    @pytest.mark.unit
    def test_require_category_without_selection(self):
        with pytest.raises(PreconditionError):
            CheckoutSession().require_category()

    @pytest.mark.unit
    def test_invalid_category_rejected(self):
        with pytest.raises(ValueError):
            CheckoutSession().select_category("retail")


class TestDetailsHelpers:

    @pytest.mark.unit
    def test_details_for_accepts_form_names(self, club_form):
        details = details_for(CustomerCategory.BULK_CLUB, club_form)
        assert isinstance(details, BulkClubDetails)
        assert details.club_name == "Green Earth Club"

    @pytest.mark.unit
    def test_details_for_rejects_other_category_fields(self, resident_form):
        with pytest.raises(ValidationFailed) as exc:
            details_for(CustomerCategory.BULK_CLUB, resident_form)
        assert set(exc.value.field_errors) == {"name", "phone", "address", "pincode"}

    @pytest.mark.unit
    def test_resolve_field_name(self):
        assert resolve_field_name(CustomerCategory.BULK_CLUB, "clubPhone") == "club_phone"
        assert resolve_field_name(CustomerCategory.BULK_CLUB, "club_phone") == "club_phone"
        assert resolve_field_name(CustomerCategory.LOCAL_RESIDENT, "pincode") == "pincode"

    @pytest.mark.unit
    def test_payload_snapshots_cart(self, quinoa, nuts, resident_form):
        session, details = _resident_session(quinoa, resident_form, 2)
        session.cart.add_item(nuts, 1)
        payload = build_order_payload(CustomerCategory.LOCAL_RESIDENT, details, session.cart)
        assert [(i.product_id, i.quantity) for i in payload.items] == [(1, 2), (2, 1)]
        assert payload.total_amount == Decimal("1148.00")
        assert payload.total_quantity == 3
        assert payload.customer.customer_data() == resident_form


class TestSubmit:

    @pytest.mark.asyncio
    async def test_resident_order_succeeds_and_clears_state(self, quinoa, resident_form):
        session, details = _resident_session(quinoa, resident_form)
        persistence = FakePersistence()

        result = await session.submit(details, persistence)

        assert result.success is True
        assert result.receipt.order_id == 1
        assert result.receipt.total_amount == Decimal("299.00")
        assert session.cart.is_empty()
        assert session.category is None
        assert persistence.payloads[0].request_token

    @pytest.mark.asyncio
    async def test_club_below_minimum_never_calls_persistence(self, nuts, club_form):
        session = CheckoutSession()
        session.cart.add_item(nuts, 5)
        session.select_category(CustomerCategory.BULK_CLUB)
        persistence = FakePersistence()

        result = await session.submit(BulkClubDetails(**club_form), persistence)

        assert result.success is False
        assert result.error_code == "validation_failed"
        assert result.field_errors["cart"] == "Club orders require minimum 20 items"
        assert persistence.payloads == []
        assert session.cart.total_items() == 5

    @pytest.mark.asyncio
    async def test_without_category_raises(self, quinoa, resident_form):
        session = CheckoutSession()
        session.cart.add_item(quinoa)
        with pytest.raises(PreconditionError):
            await session.submit(LocalResidentDetails(**resident_form), FakePersistence())

    @pytest.mark.asyncio
    async def test_empty_cart_rejected(self, resident_form):
        session = CheckoutSession()
        session.select_category(CustomerCategory.LOCAL_RESIDENT)
        persistence = FakePersistence()
        result = await session.submit(LocalResidentDetails(**resident_form), persistence)
        assert result.field_errors == {"cart": "Your cart is empty"}
        assert persistence.payloads == []

    @pytest.mark.asyncio
    async def test_empty_cart_reports_field_errors_too(self):
        session = CheckoutSession()
        session.select_category(CustomerCategory.LOCAL_RESIDENT)
        result = await session.submit(LocalResidentDetails(name="Asha", phone="123"), FakePersistence())
        assert result.field_errors == {
            "phone": "Please enter a valid 10-digit phone number",
            "address": "Address is required",
            "pincode": "Pincode is required",
            "cart": "Your cart is empty",
        }

    @pytest.mark.asyncio
    async def test_empty_club_cart_keeps_minimum_message(self):
        session = CheckoutSession()
        session.select_category(CustomerCategory.BULK_CLUB)
        persistence = FakePersistence()
        result = await session.submit(BulkClubDetails(), persistence)
        assert result.error_code == "validation_failed"
        assert "club_name" in result.field_errors
        assert "club_phone" in result.field_errors
        assert result.field_errors["cart"] == "Club orders require minimum 20 items"
        assert persistence.payloads == []

    @pytest.mark.asyncio
    async def test_persistence_failure_keeps_cart(self, quinoa, resident_form):
        session, details = _resident_session(quinoa, resident_form)
        persistence = FakePersistence(error=PersistenceError("Invalid Sri City pincode"))

        result = await session.submit(details, persistence)

        assert result.success is False
        assert result.error_code == "submission_failed"
        assert result.message == "Invalid Sri City pincode"
        assert session.cart.total_items() == 1
        assert session.category == CustomerCategory.LOCAL_RESIDENT

    @pytest.mark.asyncio
    async def test_unexpected_error_reported_generically(self, quinoa, resident_form):
        session, details = _resident_session(quinoa, resident_form)
        result = await session.submit(details, FakePersistence(error=RuntimeError("boom")))
        assert result.error_code == "submission_failed"
        assert "boom" not in result.message

    @pytest.mark.asyncio
    async def test_timeout(self, quinoa, resident_form):
        session, details = _resident_session(quinoa, resident_form)
        result = await session.submit(details, FakePersistence(delay=1), timeout=0.01)
        assert result.error_code == "submission_failed"
        assert "timed out" in result.message
        assert not session.submitting
        assert session.cart.total_items() == 1

    @pytest.mark.asyncio
    async def test_concurrent_submit_rejected(self, quinoa, resident_form):
        session, details = _resident_session(quinoa, resident_form)
        persistence = FakePersistence(delay=0.05)

        first, second = await asyncio.gather(
            session.submit(details, persistence),
            session.submit(details, persistence),
        )

        assert first.success is True
        assert second.error_code == "submission_in_progress"
        assert second.message == "Order submission already in progress"
        assert len(persistence.payloads) == 1

    @pytest.mark.asyncio
    async def test_retry_reuses_request_token(self, quinoa, resident_form):
        session, details = _resident_session(quinoa, resident_form)
        failing = FakePersistence(error=PersistenceError("Failed to submit order. Please try again."))
        await session.submit(details, failing)
        await session.submit(details, failing)
        tokens = {p.request_token for p in failing.payloads}
        assert len(tokens) == 1

    @pytest.mark.asyncio
    async def test_changed_cart_gets_new_token(self, quinoa, resident_form):
        session, details = _resident_session(quinoa, resident_form)
        failing = FakePersistence(error=PersistenceError("down"))
        await session.submit(details, failing)
        session.cart.add_item(quinoa)
        await session.submit(details, failing)
        assert failing.payloads[0].request_token != failing.payloads[1].request_token


class FakeCatalog:
    def __init__(self, products):
        self.products = {p.id: p for p in products}

    async def get_product(self, product_id):
        if product_id not in self.products:
            raise NotFoundError("Product", str(product_id))
        return self.products[product_id]


class TestRefreshCart:

    @pytest.mark.asyncio
    async def test_picks_up_new_price_and_drops_deleted(self, quinoa, nuts):
        session = CheckoutSession()
        session.cart.add_item(quinoa, 2)
        session.cart.add_item(nuts, 1)
        cheaper = quinoa.model_copy(update={"price": Decimal("249.00")})

        changes = await refresh_cart(session.cart, FakeCatalog([cheaper]))

        assert changes == {"repriced": [quinoa.id], "removed": [nuts.id]}
        assert session.cart.get(quinoa.id).quantity == 2
        assert session.cart.total_price() == Decimal("498.00")
        assert nuts.id not in session.cart

    @pytest.mark.asyncio
    async def test_unchanged_catalog(self, quinoa):
        session = CheckoutSession()
        session.cart.add_item(quinoa)
        changes = await refresh_cart(session.cart, FakeCatalog([quinoa]))
        assert changes == {"repriced": [], "removed": []}


class TestRegistry:

    @pytest.mark.unit
    def test_create_and_get(self):
        registry = SessionRegistry(ttl_minutes=5)
        session = registry.create()
        assert registry.get(session.id) is session

    @pytest.mark.unit
    def test_unknown_session(self):
        with pytest.raises(NotFoundError):
            SessionRegistry().get("does-not-exist")

    @pytest.mark.unit
    def test_expired_session(self):
        registry = SessionRegistry(ttl_minutes=5)
        session = registry.create()
        session.last_seen_at = datetime.utcnow() - timedelta(minutes=10)
        with pytest.raises(NotFoundError):
            registry.get(session.id)
        assert len(registry) == 0

    @pytest.mark.unit
    def test_purge_expired(self):
        registry = SessionRegistry(ttl_minutes=5)
        stale = registry.create()
        fresh = registry.create()
        stale.last_seen_at = datetime.utcnow() - timedelta(minutes=6)
        assert registry.purge_expired() == 1
        assert registry.get(fresh.id) is fresh
