"""
Checkout value types: customer details per category, the order payload sent
to persistence, and the results handed back to callers.

Customer details are a tagged union keyed by `category`, so a local-resident
order can never carry club fields and vice versa (extra fields are rejected).
Field values are kept as raw strings; the rules live in validation_service.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from domain.enums import CustomerCategory, OrderStatus


class _DetailsBase(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @property
    def customer_category(self) -> CustomerCategory:
        return CustomerCategory(self.category)

    def field_values(self) -> dict[str, str]:
        """Category fields keyed by attribute name (no `category` tag)."""
        return self.model_dump(exclude={"category"})

    def customer_data(self) -> dict[str, str]:
        """Category fields as stored on the order (wire aliases)."""
        return self.model_dump(exclude={"category"}, by_alias=True)


class LocalResidentDetails(_DetailsBase):
    category: Literal["local-resident"] = "local-resident"
    name: str = ""
    phone: str = ""
    address: str = ""
    pincode: str = ""


class BulkClubDetails(_DetailsBase):
    category: Literal["bulk-club"] = "bulk-club"
    club_name: str = Field("", alias="clubName")
    college_name: str = Field("", alias="collegeName")
    contact_person: str = Field("", alias="contactPerson")
    club_phone: str = Field("", alias="clubPhone")
    club_address: str = Field("", alias="clubAddress")


CustomerDetails = Annotated[
    Union[LocalResidentDetails, BulkClubDetails],
    Field(discriminator="category"),
]

DETAILS_MODELS: dict[CustomerCategory, type[_DetailsBase]] = {
    CustomerCategory.LOCAL_RESIDENT: LocalResidentDetails,
    CustomerCategory.BULK_CLUB: BulkClubDetails,
}


class OrderLineSnapshot(BaseModel):
    """A cart line frozen at submission time."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    product_id: int = Field(..., alias="productId")
    product_name: str = Field(..., alias="productName")
    price: Decimal = Field(..., gt=0)
    quantity: int = Field(..., ge=1)


class OrderPayload(BaseModel):
    """What the checkout hands to an order persistence provider."""
    model_config = ConfigDict(populate_by_name=True)

    category: CustomerCategory
    customer: CustomerDetails
    items: list[OrderLineSnapshot] = Field(..., min_length=1)
    total_amount: Decimal = Field(..., alias="totalAmount")
    total_quantity: int = Field(..., alias="totalQuantity")
    request_token: str | None = Field(default=None, alias="requestToken", max_length=64)

    @model_validator(mode="after")
    def _details_match_category(self) -> "OrderPayload":
        if self.customer.customer_category != self.category:
            raise ValueError(
                f"customer details are for {self.customer.category}, order is {self.category.value}"
            )
        return self


class OrderReceipt(BaseModel):
    """Acknowledgement of a persisted order."""
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(..., alias="orderId")
    status: OrderStatus = OrderStatus.PENDING
    total_amount: Decimal = Field(..., alias="totalAmount")
    total_quantity: int = Field(..., alias="totalQuantity")
    created_at: datetime | None = Field(default=None, alias="createdAt")


class ValidationResult(BaseModel):
    """Outcome of validate(): valid when no field errors were collected."""
    field_errors: dict[str, str] = Field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.field_errors


class SubmissionResult(BaseModel):
    """
    Outcome of CheckoutSession.submit().

    error_code is "validation_failed" (nothing was sent),
    "submission_in_progress" (another submit is awaiting persistence) or
    "submission_failed" (persistence rejected or could not be reached).
    """
    success: bool
    receipt: OrderReceipt | None = None
    error_code: Literal["validation_failed", "submission_in_progress", "submission_failed"] | None = None
    message: str | None = None
    field_errors: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def ok(cls, receipt: OrderReceipt) -> "SubmissionResult":
        return cls(success=True, receipt=receipt)

    @classmethod
    def validation_failed(cls, field_errors: dict[str, str]) -> "SubmissionResult":
        return cls(
            success=False,
            error_code="validation_failed",
            message="Please fix the highlighted fields",
            field_errors=field_errors,
        )

    @classmethod
    def in_progress(cls) -> "SubmissionResult":
        return cls(
            success=False,
            error_code="submission_in_progress",
            message="Order submission already in progress",
        )

    @classmethod
    def submission_failed(cls, message: str) -> "SubmissionResult":
        return cls(success=False, error_code="submission_failed", message=message)
