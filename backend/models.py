"""
Pydantic models for request/response validation.
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.enums import CustomerCategory, OrderStatus


class ApiBase(BaseModel):
    """Shared base - allows construction by Python name or alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Catalog Models ──────────────────────────────────────────────────

class ProductCreateRequest(ApiBase):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    image_url: str = Field("", alias="imageUrl", max_length=2000)


class ProductUpdateRequest(ApiBase):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(default=None, alias="imageUrl", max_length=2000)


# ── Auth Models ─────────────────────────────────────────────────────

class AdminTokenRequest(ApiBase):
    api_key: str = Field(..., alias="apiKey", min_length=1, max_length=256)


class AdminTokenResponse(ApiBase):
    access_token: str = Field(..., alias="accessToken")
    token_type: str = Field("Bearer", alias="tokenType")
    expires_in_seconds: int = Field(..., alias="expiresInSeconds")


# ── Checkout Session Models ─────────────────────────────────────────

class CartItemRequest(ApiBase):
    """Add a catalog product to the session cart."""
    product_id: int = Field(..., alias="productId", gt=0)
    quantity: int = Field(1, ge=1, le=1000)


class CartQuantityRequest(ApiBase):
    """Replace a line's quantity; zero or less removes the line."""
    quantity: int = Field(..., le=1000)


class CategoryRequest(ApiBase):
    category: CustomerCategory


class FieldCheckRequest(ApiBase):
    field: str = Field(..., min_length=1, max_length=50)
    value: Optional[str] = Field(default=None, max_length=2000)


class CheckoutRequest(ApiBase):
    """
    Customer form values for the session's category.

    Keys may be attribute names (club_name) or form names (clubName).
    """
    customer: dict[str, str] = Field(default_factory=dict)


# ── Order Admin Models ──────────────────────────────────────────────

class OrderStatusUpdateRequest(ApiBase):
    status: OrderStatus
