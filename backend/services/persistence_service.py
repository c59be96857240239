"""
Order persistence providers used by the checkout submitter.

Two interchangeable implementations of `OrderPersistence.create_order()`:

    DatabaseOrderPersistence - writes through order_service in-process
    HttpOrderPersistence     - POSTs the payload to a remote /api/orders

Both raise PersistenceError for every failure (server rejection, network
error, timeout), carrying a message safe to show to the shopper.
"""
import logging
from typing import Optional, Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from domain.checkout import OrderPayload, OrderReceipt
from domain.errors import DomainError, PersistenceError

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to submit order. Please try again."


class OrderPersistence(Protocol):
    async def create_order(self, payload: OrderPayload) -> OrderReceipt:
        ...


def receipt_from_order(order) -> OrderReceipt:
    return OrderReceipt(
        order_id=order.id,
        status=order.status,
        total_amount=order.total_amount,
        total_quantity=order.total_quantity,
        created_at=order.created_at,
    )


class DatabaseOrderPersistence:
    """Persist orders with the request's own database session."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def create_order(self, payload: OrderPayload) -> OrderReceipt:
        from services import order_service

        try:
            order, created = await order_service.create_order(self._db, payload)
            await self._db.commit()
        except DomainError as e:
            await self._db.rollback()
            logger.warning(f"Order rejected by store: {e.message}")
            raise PersistenceError(e.message, details=e.details)
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error(f"Database error while saving order: {e}", exc_info=True)
            raise PersistenceError(GENERIC_FAILURE)

        if not created:
            logger.info(f"Order {order.id} already stored for this request token")
        return receipt_from_order(order)


class HttpOrderPersistence:
    """
    Persist orders through the storefront REST API.

    Args:
        base_url: API root, e.g. http://localhost:8000
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests inject MockTransport)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.order_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.order_submit_timeout_seconds
        self._transport = transport

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull a readable message out of an error response body."""
        try:
            body = response.json()
        except ValueError:
            return GENERIC_FAILURE
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("message") or GENERIC_FAILURE
        if isinstance(error, str):
            return error
        return GENERIC_FAILURE

    async def create_order(self, payload: OrderPayload) -> OrderReceipt:
        url = f"{self.base_url}/api/orders"
        body = payload.model_dump(mode="json", by_alias=True)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=body)
        except httpx.TimeoutException:
            logger.warning(f"Order API timed out after {self.timeout}s: {url}")
            raise PersistenceError("Order service timed out. Please try again.")
        except httpx.HTTPError as e:
            logger.warning(f"Order API unreachable: {e}")
            raise PersistenceError(GENERIC_FAILURE)

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.warning(f"Order API rejected order ({response.status_code}): {message}")
            raise PersistenceError(message, details={"status_code": response.status_code})

        try:
            order = response.json()["data"]["order"]
            return OrderReceipt(
                order_id=order["id"],
                status=order["status"],
                total_amount=order["total_amount"],
                total_quantity=order["total_quantity"],
                created_at=order.get("created_at"),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Unexpected order API response: {e}")
            raise PersistenceError(GENERIC_FAILURE)


def get_persistence(db: AsyncSession) -> OrderPersistence:
    """Provider chosen by ORDER_PERSISTENCE_BACKEND."""
    if settings.order_persistence_backend == "rest":
        return HttpOrderPersistence()
    return DatabaseOrderPersistence(db)
