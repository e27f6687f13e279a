from __future__ import annotations

from typing import Any, Optional

from storepos.domain.errors import NotFoundError, ValidationError
from storepos.domain.filters import product_matches
from storepos.domain.models import Operator, Product
from storepos.services.auth_service import AuthService


def _validate_product_fields(
    name: str, buying_price: float, selling_price: float, stock: int, low_stock_threshold: int
) -> None:
    if not name:
        raise ValidationError("Name is required.")
    if buying_price < 0:
        raise ValidationError("Buying price must be >= 0.")
    if selling_price <= 0:
        raise ValidationError("Selling price must be > 0.")
    if stock < 0 or low_stock_threshold < 0:
        raise ValidationError("Stock values must be >= 0.")


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class InventoryService:
    def __init__(self, repo, auth: AuthService):
        self.repo = repo
        self.auth = auth

    def list_products(self, operator: Operator, query: str = "", store_id: Optional[str] = None) -> list[Product]:
        scope = self.auth.store_scope(operator)
        if scope is not None:
            store_id = scope
        products = self.repo.list_products(store_id=store_id)
        return [p for p in products if product_matches(p, query)]

    def get_product(self, operator: Operator, product_id: str) -> Product:
        p = self.repo.get_product(product_id)
        if not p:
            raise NotFoundError("Product not found.")
        self.auth.require_store_access(operator, p.store_id)
        return p

    @staticmethod
    def low_stock(products: list[Product]) -> list[Product]:
        return [p for p in products if p.is_low_stock]

    def create_product(
        self,
        operator: Operator,
        store_id: Optional[str],
        name: str,
        buying_price: float,
        selling_price: float,
        stock: int = 0,
        low_stock_threshold: int = 10,
        sku: Optional[str] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        self.auth.require_action(operator, "create_product")
        store_id = self.auth.store_scope(operator) or store_id
        if not store_id:
            raise ValidationError("Store is required.")
        if not self.repo.get_store(store_id):
            raise NotFoundError("Store not found.")

        name = (name or "").strip()
        _validate_product_fields(name, float(buying_price), float(selling_price), int(stock), int(low_stock_threshold))

        return self.repo.add_product(
            {
                "store_id": store_id,
                "name": name,
                "sku": _clean(sku),
                "category": _clean(category),
                "description": _clean(description),
                "buying_price": float(buying_price),
                "selling_price": float(selling_price),
                "stock": int(stock),
                "low_stock_threshold": int(low_stock_threshold),
                "created_by": operator.id,
            }
        )

    def update_product(self, operator: Operator, product_id: str, **changes: Any) -> Product:
        self.auth.require_action(operator, "edit_product")
        current = self.get_product(operator, product_id)

        name = (changes.get("name", current.name) or "").strip()
        buying = float(changes.get("buying_price", current.buying_price))
        selling = float(changes.get("selling_price", current.selling_price))
        stock = int(changes.get("stock", current.stock))
        threshold = int(changes.get("low_stock_threshold", current.low_stock_threshold))
        _validate_product_fields(name, buying, selling, stock, threshold)

        fields: dict[str, Any] = {
            "name": name,
            "buying_price": buying,
            "selling_price": selling,
            "stock": stock,
            "low_stock_threshold": threshold,
        }
        for key in ("sku", "category", "description"):
            if key in changes:
                fields[key] = _clean(changes[key])
        if "store_id" in changes and changes["store_id"] != current.store_id:
            self.auth.require_store_access(operator, changes["store_id"])
            fields["store_id"] = changes["store_id"]

        if not self.repo.update_product(product_id, fields):
            raise NotFoundError("Product not found.")
        return self.get_product(operator, product_id)

    def delete_product(self, operator: Operator, product_id: str) -> None:
        self.auth.require_action(operator, "delete_product")
        removed = self.repo.delete_product(product_id)
        if not removed:
            raise NotFoundError("Product not found.")
