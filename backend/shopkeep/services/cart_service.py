# Overview: In-memory cart owned by one POS session; line bookkeeping and totals.

"""
Cart rules

- A weighed (fractional) sale is always its own line: quantity 1, unit price
  equal to the weighed total, actual_weight carrying the measured amount.
  Two weighed portions of the same product stay two lines.
- A counted sale of a product already in the cart (non-fractional line)
  increments that line; otherwise a new line at the product's retail price.
- Nothing is reserved: adding or removing lines never touches stock.
- subtotal = sum(unit_price * quantity - line discount); total = subtotal -
  transaction discount; tax is always 0.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from ..models import Product
from ..money import line_amount_cents, quantity_to_json, to_quantity

ONE = Decimal("1")


class CartError(ValueError):
    """Raised for invalid cart edits."""
    pass


@dataclass(frozen=True)
class FractionalDetails:
    """A weighed portion: how much was measured and what it costs in total."""
    weight: Decimal
    total_price_cents: int

    @classmethod
    def create(cls, weight, total_price_cents: int) -> "FractionalDetails":
        qty = to_quantity(weight)
        if qty <= 0:
            raise CartError("weight must be > 0")
        if total_price_cents is None or total_price_cents < 0:
            raise CartError("total price must be >= 0")
        return cls(weight=qty, total_price_cents=int(total_price_cents))


@dataclass
class CartItem:
    id: str
    product_id: int
    product_name: str
    quantity: Decimal
    unit_price_cents: int
    discount_cents: int = 0
    is_fractional: bool = False
    actual_weight: Decimal | None = None

    @property
    def line_total_cents(self) -> int:
        return line_amount_cents(self.unit_price_cents, self.quantity) - self.discount_cents

    @property
    def stock_quantity(self) -> Decimal:
        """Amount to take out of inventory when this line is sold."""
        if self.is_fractional and self.actual_weight is not None:
            return self.actual_weight
        return self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": quantity_to_json(self.quantity),
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
            "is_fractional": self.is_fractional,
            "actual_weight": quantity_to_json(self.actual_weight),
        }


@dataclass
class Cart:
    items: list[CartItem] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def _find(self, item_id: str) -> CartItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def add_to_cart(
        self,
        product: Product,
        quantity=1,
        fractional: FractionalDetails | None = None,
        discount_cents: int = 0,
    ) -> CartItem:
        if product is None:
            raise CartError("Product not found")
        if not product.is_active:
            raise CartError(f"Product {product.name} is inactive")
        if discount_cents < 0:
            raise CartError("line discount must be >= 0")

        if fractional is not None:
            item = CartItem(
                id=uuid.uuid4().hex,
                product_id=product.id,
                product_name=product.name,
                quantity=ONE,
                unit_price_cents=fractional.total_price_cents,
                discount_cents=discount_cents,
                is_fractional=True,
                actual_weight=fractional.weight,
            )
            self.items.append(item)
            return item

        qty = to_quantity(quantity)
        if qty <= 0:
            raise CartError("quantity must be > 0")

        for item in self.items:
            if item.product_id == product.id and not item.is_fractional:
                item.quantity = to_quantity(item.quantity + qty)
                item.discount_cents += discount_cents
                return item

        item = CartItem(
            id=uuid.uuid4().hex,
            product_id=product.id,
            product_name=product.name,
            quantity=qty,
            unit_price_cents=product.retail_price_cents,
            discount_cents=discount_cents,
        )
        self.items.append(item)
        return item

    def remove_from_cart(self, item_id: str) -> bool:
        item = self._find(item_id)
        if item is None:
            return False
        self.items.remove(item)
        return True

    def update_cart_quantity(self, item_id: str, quantity) -> CartItem | None:
        """Replace a line's quantity; zero or less removes the line (returns None)."""
        qty = to_quantity(quantity)
        if qty <= 0:
            self.remove_from_cart(item_id)
            return None

        item = self._find(item_id)
        if item is None:
            raise CartError("Cart item not found")
        item.quantity = qty
        return item

    def clear(self) -> None:
        self.items.clear()

    def subtotal_cents(self) -> int:
        return sum(item.line_total_cents for item in self.items)

    def total_cents(self, discount_cents: int = 0) -> int:
        return self.subtotal_cents() - discount_cents

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "subtotal_cents": self.subtotal_cents(),
            "item_count": len(self.items),
        }
