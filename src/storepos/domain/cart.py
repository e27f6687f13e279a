from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from storepos.domain.errors import InsufficientStockError, NotFoundError
from storepos.domain.models import Customer, Product


def compute_discount(subtotal: float, customer: Optional[Customer]) -> float:
    """Discount a customer gets on ``subtotal``.

    Percentage customers get ``subtotal * P / 100``. Fixed-amount customers get
    their amount capped at the subtotal, so a total never goes below zero.
    """
    if customer is None:
        return 0.0
    if customer.discount_type == "percentage":
        return subtotal * float(customer.discount_percentage) / 100
    return min(float(customer.discount_fixed_amount), subtotal)


@dataclass
class CartItem:
    product: Product
    quantity: int

    @property
    def subtotal(self) -> float:
        return self.product.selling_price * self.quantity

    @property
    def profit(self) -> float:
        return (self.product.selling_price - self.product.buying_price) * self.quantity


@dataclass(frozen=True)
class CartTotals:
    subtotal: float
    discount: float
    total: float
    profit: float
    units: int


class Cart:
    def __init__(self) -> None:
        self._items: list[CartItem] = []

    @property
    def items(self) -> tuple[CartItem, ...]:
        return tuple(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def units(self) -> int:
        return sum(it.quantity for it in self._items)

    def _find(self, product_id: str) -> Optional[CartItem]:
        for it in self._items:
            if it.product.id == product_id:
                return it
        return None

    def quantity_of(self, product_id: str) -> int:
        it = self._find(product_id)
        return it.quantity if it else 0

    def add(self, product: Product) -> CartItem:
        existing = self._find(product.id)
        if existing is None:
            if product.stock < 1:
                raise InsufficientStockError(f"Only {product.stock} units available")
            item = CartItem(product=product, quantity=1)
            self._items.append(item)
            return item

        if existing.quantity >= product.stock:
            raise InsufficientStockError(f"Only {product.stock} units available")
        existing.product = product
        existing.quantity += 1
        return existing

    def change_quantity(self, product_id: str, delta: int) -> Optional[CartItem]:
        """Step a line by ``delta``. Returns None when the line was dropped."""
        item = self._find(product_id)
        if item is None:
            raise NotFoundError("Item is not in the cart.")

        new_qty = item.quantity + int(delta)
        if new_qty <= 0:
            self._items.remove(item)
            return None
        if new_qty > item.product.stock:
            raise InsufficientStockError(f"Only {item.product.stock} units available")
        item.quantity = new_qty
        return item

    def remove(self, product_id: str) -> None:
        self._items = [it for it in self._items if it.product.id != product_id]

    def clear(self) -> None:
        self._items = []

    def subtotal(self) -> float:
        return sum(it.subtotal for it in self._items)

    def discount(self, customer: Optional[Customer]) -> float:
        return compute_discount(self.subtotal(), customer)

    def total(self, customer: Optional[Customer]) -> float:
        return self.subtotal() - self.discount(customer)

    def profit(self, customer: Optional[Customer]) -> float:
        # the discount comes out of margin, never out of cost
        return sum(it.profit for it in self._items) - self.discount(customer)

    def totals(self, customer: Optional[Customer]) -> CartTotals:
        subtotal = self.subtotal()
        discount = compute_discount(subtotal, customer)
        return CartTotals(
            subtotal=subtotal,
            discount=discount,
            total=subtotal - discount,
            profit=sum(it.profit for it in self._items) - discount,
            units=self.units,
        )

    def store_ids(self) -> set[str]:
        return {it.product.store_id for it in self._items}
