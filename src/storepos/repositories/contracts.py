from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol

from storepos.domain.models import (
    Customer,
    Operator,
    Product,
    Purchase,
    SaleHeader,
    SaleLine,
    Store,
)


class ProductRepository(Protocol):
    def list_products(self, store_id: Optional[str] = None, in_stock_only: bool = False) -> list[Product]: ...
    def get_product(self, product_id: str) -> Optional[Product]: ...


class BackendRepository(ProductRepository, Protocol):
    """Everything the services need from a relational backend."""

    # stores / operators
    def list_stores(self) -> list[Store]: ...
    def get_store(self, store_id: str) -> Optional[Store]: ...
    def add_store(self, fields: dict[str, Any]) -> str: ...
    def get_operator(self, operator_id: str) -> Optional[Operator]: ...
    def add_operator(self, fields: dict[str, Any]) -> str: ...
    def update_operator_name(self, operator_id: str, full_name: str) -> bool: ...

    # products
    def count_products(self, store_id: Optional[str] = None) -> int: ...
    def low_stock_products(self, store_id: Optional[str] = None, limit: int = 5) -> list[Product]: ...
    def add_product(self, fields: dict[str, Any]) -> str: ...
    def update_product(self, product_id: str, fields: dict[str, Any]) -> bool: ...
    def delete_product(self, product_id: str) -> bool: ...

    # customers
    def list_customers(self, store_id: Optional[str] = None) -> list[Customer]: ...
    def get_customer(self, customer_id: str) -> Optional[Customer]: ...
    def add_customer(self, fields: dict[str, Any]) -> str: ...
    def update_customer(self, customer_id: str, fields: dict[str, Any]) -> bool: ...

    # sales
    def create_sale_with_items(self, header: dict[str, Any], items: Iterable[dict[str, Any]]) -> str: ...
    def list_sales(
        self,
        store_id: Optional[str] = None,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        newest_first: bool = True,
        query: Optional[str] = None,
    ) -> tuple[list[SaleHeader], int]: ...
    def get_sale(self, sale_id: str) -> Optional[SaleHeader]: ...
    def sale_items_for_sale(self, sale_id: str) -> list[SaleLine]: ...

    # purchases
    def create_purchase(self, fields: dict[str, Any]) -> str: ...
    def list_purchases(
        self,
        store_id: Optional[str] = None,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
    ) -> list[Purchase]: ...
