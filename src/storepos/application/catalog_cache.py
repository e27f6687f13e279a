from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Mapping, Optional

from storepos.domain.filters import customer_matches, product_matches
from storepos.domain.models import Customer, Product

log = logging.getLogger(__name__)


class CatalogCache:
    """
    Session-local copy of the sellable products and the customers.

    A refetch overwrites both lists wholesale, so any optimistic stock change
    made after a sale is dropped in favour of what the backend reports.
    """

    def __init__(self) -> None:
        self._products: dict[str, Product] = {}
        self._customers: dict[str, Customer] = {}

    @property
    def products(self) -> list[Product]:
        return sorted(self._products.values(), key=lambda p: p.name.lower())

    @property
    def customers(self) -> list[Customer]:
        return sorted(self._customers.values(), key=lambda c: c.name.lower())

    def replace_products(self, products: Iterable[Product]) -> None:
        self._products = {p.id: p for p in products}

    def replace_customers(self, customers: Iterable[Customer]) -> None:
        self._customers = {c.id: c for c in customers}

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        return self._customers.get(customer_id)

    def apply_sale(self, sold: Mapping[str, int]) -> None:
        """Decrement cached stock by the quantities just sold."""
        for product_id, qty in sold.items():
            p = self._products.get(product_id)
            if p is None:
                log.debug("apply_sale_skipped product=%s reason=not_cached", product_id)
                continue
            self._products[product_id] = replace(p, stock=max(p.stock - int(qty), 0))

    def search_products(self, query: str = "") -> list[Product]:
        return [p for p in self.products if product_matches(p, query)]

    def search_customers(self, query: str = "") -> list[Customer]:
        return [c for c in self.customers if customer_matches(c, query)]
