from __future__ import annotations

from typing import Iterable, Optional

from storepos.domain.models import Customer, Product, Purchase


def _contains(query: str, fields: Iterable[Optional[str]]) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    return any(f is not None and q in f.lower() for f in fields)


def product_matches(product: Product, query: str) -> bool:
    return _contains(query, (product.name, product.sku, product.category))


def customer_matches(customer: Customer, query: str) -> bool:
    return _contains(query, (customer.name, customer.phone))


def purchase_matches(purchase: Purchase, query: str) -> bool:
    return _contains(query, (purchase.supplier, purchase.product_name))
