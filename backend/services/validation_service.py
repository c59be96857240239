"""
Order Validator - eligibility rules for a checkout.

Rules (every violation is collected, not just the first):
    1. Required fields for the category must be non-empty after trimming
    2. Phone number: 10 digits, first digit 6-9 (both categories)
    3. local-resident: pincode must be in the delivery allow-list
    4. bulk-club: cart must hold at least BULK_MINIMUM_QUANTITY items (inclusive)

Configuration (from .env):
    VALID_PINCODES         - comma-separated delivery pincodes
    DELIVERY_REGION        - region name used in the pincode message
    BULK_MINIMUM_QUANTITY  - club order threshold (default 20)

Everything here is synchronous and side-effect free.
"""
import logging
from typing import Iterable, Optional

from config import settings
from domain.cart import Cart
from domain.checkout import CustomerDetails, ValidationResult
from domain.enums import CustomerCategory
from utils.validators import is_blank, is_valid_phone, is_valid_pincode

logger = logging.getLogger(__name__)

# Field -> human label, in form order
REQUIRED_FIELDS: dict[CustomerCategory, dict[str, str]] = {
    CustomerCategory.LOCAL_RESIDENT: {
        "name": "Name",
        "phone": "Phone number",
        "address": "Address",
        "pincode": "Pincode",
    },
    CustomerCategory.BULK_CLUB: {
        "club_name": "Club name",
        "college_name": "College name",
        "contact_person": "Contact person name",
        "club_phone": "Phone number",
        "club_address": "College address",
    },
}

PHONE_FIELD = {
    CustomerCategory.LOCAL_RESIDENT: "phone",
    CustomerCategory.BULK_CLUB: "club_phone",
}

PINCODE_FIELD = "pincode"
CART_FIELD = "cart"
CATEGORY_FIELD = "category"

PHONE_FORMAT_MESSAGE = "Please enter a valid 10-digit phone number"


def pincode_message(region: Optional[str] = None) -> str:
    return f"Invalid {region or settings.delivery_region} pincode"


def bulk_minimum_message(threshold: int) -> str:
    return f"Club orders require minimum {threshold} items"


def validate_field(
    category: CustomerCategory,
    field: str,
    value: Optional[str],
    *,
    valid_pincodes: Optional[Iterable[str]] = None,
) -> Optional[str]:
    """
    Check a single form field (on blur/change).

    Returns the error message, or None when the value is acceptable.
    Raises ValueError for a field that does not belong to the category.
    """
    category = CustomerCategory(category)
    labels = REQUIRED_FIELDS[category]
    if field not in labels:
        raise ValueError(f"Unknown field '{field}' for {category.value} orders")

    if is_blank(value):
        return f"{labels[field]} is required"

    if field == PHONE_FIELD[category] and not is_valid_phone(value):
        return PHONE_FORMAT_MESSAGE

    if category == CustomerCategory.LOCAL_RESIDENT and field == PINCODE_FIELD:
        allowed = settings.valid_pincodes_list if valid_pincodes is None else valid_pincodes
        if not is_valid_pincode(value, allowed):
            return pincode_message()

    return None


def validate(
    category: CustomerCategory,
    details: CustomerDetails,
    cart: Cart,
    *,
    valid_pincodes: Optional[Iterable[str]] = None,
    bulk_minimum: Optional[int] = None,
) -> ValidationResult:
    """
    Apply every checkout rule to a candidate order.

    Args:
        category: The customer category chosen for the session
        details: Customer fields (must be the variant for `category`)
        cart: Cart being checked out
        valid_pincodes: Override the configured pincode allow-list
        bulk_minimum: Override the configured club minimum

    Returns:
        ValidationResult with one message per failing field.
    """
    category = CustomerCategory(category)
    allowed = list(settings.valid_pincodes_list if valid_pincodes is None else valid_pincodes)
    threshold = settings.bulk_minimum_quantity if bulk_minimum is None else bulk_minimum

    if details.customer_category != category:
        return ValidationResult(
            field_errors={CATEGORY_FIELD: "Customer details do not match the selected category"}
        )

    errors: dict[str, str] = {}
    values = details.field_values()

    for field in REQUIRED_FIELDS[category]:
        message = validate_field(category, field, values.get(field), valid_pincodes=allowed)
        if message:
            errors[field] = message

    if category == CustomerCategory.BULK_CLUB and cart.total_items() < threshold:
        errors[CART_FIELD] = bulk_minimum_message(threshold)

    if errors:
        logger.debug(f"Validation failed for {category.value} order: {sorted(errors)}")
    return ValidationResult(field_errors=errors)
