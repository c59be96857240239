"""
Cart aggregate - the products and quantities a shopper has picked.

The cart is plain in-memory state owned by one checkout session. It never
performs I/O; catalog lookups happen before a product is handed to add_item().

Invariants:
    - at most one line per product id
    - every line has quantity >= 1 (a line driven to 0 is removed)
"""
import logging
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from domain.constants import MONEY_PLACES

logger = logging.getLogger(__name__)

_CENTS = Decimal(MONEY_PLACES)


class CatalogProduct(BaseModel):
    """Read-only view of a catalog product as the checkout sees it."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., gt=0)
    image_url: str = ""


class CartLine(BaseModel):
    """One (product, quantity) pairing."""
    model_config = ConfigDict(validate_assignment=True)

    product: CatalogProduct
    quantity: int = Field(..., ge=1)

    @property
    def line_total(self) -> Decimal:
        return (self.product.price * self.quantity).quantize(_CENTS)


class Cart:
    """Ordered collection of CartLines keyed by product id."""

    def __init__(self):
        self._lines: dict[int, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, product_id: int) -> bool:
        return product_id in self._lines

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def get(self, product_id: int) -> CartLine | None:
        return self._lines.get(product_id)

    def add_item(self, product: CatalogProduct, quantity: int = 1) -> CartLine:
        """Add `quantity` of `product`, merging into an existing line."""
        if quantity <= 0:
            raise ValueError(f"quantity must be positive, got {quantity}")

        line = self._lines.get(product.id)
        if line is None:
            line = CartLine(product=product, quantity=quantity)
            self._lines[product.id] = line
        else:
            line.quantity += quantity
        return line

    def update_quantity(self, product_id: int, quantity: int) -> bool:
        """
        Replace the quantity of a line.

        quantity <= 0 removes the line. Returns False (and logs) when the
        product is not in the cart.
        """
        if product_id not in self._lines:
            logger.info(f"Quantity update ignored: product {product_id} not in cart")
            return False
        if quantity <= 0:
            return self.remove_item(product_id)
        self._lines[product_id].quantity = quantity
        return True

    def remove_item(self, product_id: int) -> bool:
        """Drop the line for `product_id`. Returns False when it was absent."""
        if self._lines.pop(product_id, None) is None:
            logger.info(f"Remove ignored: product {product_id} not in cart")
            return False
        return True

    def replace_product(self, product: CatalogProduct) -> bool:
        """
        Swap in a fresh catalog view of a product already in the cart.

        Quantity is kept. Returns True when the name or price changed.
        """
        line = self._lines.get(product.id)
        if line is None:
            return False
        changed = line.product.price != product.price or line.product.name != product.name
        line.product = product
        return changed

    def clear(self) -> None:
        self._lines.clear()

    def total_items(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def total_price(self) -> Decimal:
        total = sum((line.line_total for line in self._lines.values()), Decimal("0"))
        return total.quantize(_CENTS)
