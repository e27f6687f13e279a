from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import requests

from storepos.config import BackendSettings
from storepos.domain.errors import BackendError, ValidationError
from storepos.domain.models import Customer, Operator, Product, Purchase, SaleHeader, SaleLine, Store

log = logging.getLogger("storepos.backend")

SALES_SELECT = "*,customers(name,customer_type)"
SALE_ITEMS_SELECT = "*,products(name,sku)"
PURCHASES_SELECT = "*,products(name)"


def _eq(value: Any) -> str:
    return f"eq.{value}"


def _parse_total(content_range: Optional[str]) -> int:
    # "0-14/57" or "*/0"
    if not content_range or "/" not in content_range:
        return 0
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


class RestRepository:
    """Backend reached through a PostgREST-style HTTP API.

    Stock bookkeeping (decrement on sale items, increment on purchases) is done
    by the backend itself. When ``settings.sale_rpc`` names a database function,
    a sale and its items are written by one call inside a backend transaction.
    """

    def __init__(self, settings: BackendSettings, session: requests.Session | None = None):
        if not settings.rest_url or not settings.rest_key:
            raise ValidationError("rest backend needs a URL and an API key.")
        self.base_url = f"{settings.rest_url}/rest/v1"
        self.timeout = settings.http_timeout
        self.sale_rpc = settings.sale_rpc
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": settings.rest_key,
                "Authorization": f"Bearer {settings.rest_key}",
                "Content-Type": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> requests.Response:
        headers = {"Prefer": prefer} if prefer else None
        try:
            r = self.session.request(
                method,
                f"{self.base_url}/{path}",
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
            r.raise_for_status()
            return r
        except requests.RequestException as e:
            log.warning("backend_call_failed method=%s path=%s error=%s", method, path, e)
            raise BackendError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _json(r: requests.Response) -> Any:
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            log.warning("backend_bad_payload url=%s status=%s error=%s", r.url, r.status_code, e)
            raise BackendError(f"Backend returned a non-JSON body ({r.status_code}).") from e

    def _select(self, table: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        r = self._request("GET", table, params=params)
        return list(self._json(r) or [])

    def _select_one(self, table: str, row_id: str, select: str = "*") -> Optional[dict[str, Any]]:
        rows = self._select(table, {"select": select, "id": _eq(row_id), "limit": 1})
        return rows[0] if rows else None

    def _insert(self, table: str, payload: Any) -> list[dict[str, Any]]:
        r = self._request("POST", table, json=payload, prefer="return=representation")
        return list(self._json(r) or [])

    def _insert_one(self, table: str, payload: dict[str, Any]) -> str:
        rows = self._insert(table, payload)
        if not rows:
            raise BackendError(f"Insert into {table} returned no row.")
        return str(rows[0]["id"])

    def _patch(self, table: str, row_id: str, payload: dict[str, Any]) -> bool:
        r = self._request("PATCH", table, params={"id": _eq(row_id)}, json=payload, prefer="return=representation")
        return bool(self._json(r))

    def _delete(self, table: str, row_id: str) -> bool:
        r = self._request("DELETE", table, params={"id": _eq(row_id)}, prefer="return=representation")
        return bool(self._json(r))

    # ---------- Stores ----------
    def list_stores(self) -> list[Store]:
        return [Store.from_row(r) for r in self._select("stores", {"select": "*", "order": "name.asc"})]

    def get_store(self, store_id: str) -> Optional[Store]:
        r = self._select_one("stores", store_id)
        return Store.from_row(r) if r else None

    def add_store(self, fields: dict[str, Any]) -> str:
        return self._insert_one("stores", fields)

    # ---------- Operators ----------
    def get_operator(self, operator_id: str) -> Optional[Operator]:
        r = self._select_one("profiles", operator_id)
        return Operator.from_row(r) if r else None

    def add_operator(self, fields: dict[str, Any]) -> str:
        return self._insert_one("profiles", fields)

    def update_operator_name(self, operator_id: str, full_name: str) -> bool:
        return self._patch("profiles", operator_id, {"full_name": full_name})

    # ---------- Products ----------
    def list_products(self, store_id: Optional[str] = None, in_stock_only: bool = False) -> list[Product]:
        params: dict[str, Any] = {"select": "*", "order": "name.asc"}
        if in_stock_only:
            params["stock"] = "gt.0"
        if store_id is not None:
            params["store_id"] = _eq(store_id)
        return [Product.from_row(r) for r in self._select("products", params)]

    def get_product(self, product_id: str) -> Optional[Product]:
        r = self._select_one("products", product_id)
        return Product.from_row(r) if r else None

    def count_products(self, store_id: Optional[str] = None) -> int:
        params: dict[str, Any] = {"select": "id", "limit": 1}
        if store_id is not None:
            params["store_id"] = _eq(store_id)
        r = self._request("GET", "products", params=params, prefer="count=exact")
        return _parse_total(r.headers.get("Content-Range"))

    def low_stock_products(self, store_id: Optional[str] = None, limit: int = 5) -> list[Product]:
        # PostgREST cannot compare two columns, so the threshold check runs here
        products = self.list_products(store_id=store_id)
        low = sorted((p for p in products if p.is_low_stock), key=lambda p: (p.stock, p.name))
        return low[: int(limit)]

    def add_product(self, fields: dict[str, Any]) -> str:
        return self._insert_one("products", fields)

    def update_product(self, product_id: str, fields: dict[str, Any]) -> bool:
        return self._patch("products", product_id, fields)

    def delete_product(self, product_id: str) -> bool:
        return self._delete("products", product_id)

    # ---------- Customers ----------
    def list_customers(self, store_id: Optional[str] = None) -> list[Customer]:
        params: dict[str, Any] = {"select": "*", "order": "name.asc"}
        if store_id is not None:
            params["store_id"] = _eq(store_id)
        return [Customer.from_row(r) for r in self._select("customers", params)]

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        r = self._select_one("customers", customer_id)
        return Customer.from_row(r) if r else None

    def add_customer(self, fields: dict[str, Any]) -> str:
        return self._insert_one("customers", fields)

    def update_customer(self, customer_id: str, fields: dict[str, Any]) -> bool:
        return self._patch("customers", customer_id, fields)

    # ---------- Sales ----------
    def create_sale_with_items(self, header: dict[str, Any], items: Iterable[dict[str, Any]]) -> str:
        items = list(items)
        if self.sale_rpc:
            r = self._request("POST", f"rpc/{self.sale_rpc}", json={"sale": header, "items": items})
            return str(self._json(r))

        sale_id = self._insert_one("sales", header)
        try:
            # a 2xx is enough here, the body is not read
            lines = [{**it, "sale_id": sale_id} for it in items]
            self._request("POST", "sale_items", json=lines, prefer="return=minimal")
        except BackendError:
            log.error("orphaned_sale sale_id=%s items=%s, removing header", sale_id, len(items))
            try:
                self._delete("sales", sale_id)
            except BackendError:
                log.error("orphaned_sale_cleanup_failed sale_id=%s", sale_id)
            raise
        return sale_id

    def list_sales(
        self,
        store_id: Optional[str] = None,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        newest_first: bool = True,
        query: Optional[str] = None,
    ) -> tuple[list[SaleHeader], int]:
        params: list[tuple[str, Any]] = [
            ("select", SALES_SELECT),
            ("order", "created_at.desc" if newest_first else "created_at.asc"),
        ]
        if store_id is not None:
            params.append(("store_id", _eq(store_id)))
        if start_iso is not None:
            params.append(("created_at", f"gte.{start_iso}"))
        if end_iso is not None:
            params.append(("created_at", f"lte.{end_iso}"))
        if limit is not None:
            params.append(("limit", int(limit)))
        if query:
            params.append(("id", f"ilike.*{query.strip()}*"))
        if offset:
            params.append(("offset", int(offset)))

        # created_at may appear twice, so params go as a list of pairs
        r = self._request("GET", "sales", params=params, prefer="count=exact")
        rows = [SaleHeader.from_row(d) for d in (self._json(r) or [])]
        total = _parse_total(r.headers.get("Content-Range")) or len(rows)
        return rows, total

    def get_sale(self, sale_id: str) -> Optional[SaleHeader]:
        r = self._select_one("sales", sale_id, select=SALES_SELECT)
        return SaleHeader.from_row(r) if r else None

    def sale_items_for_sale(self, sale_id: str) -> list[SaleLine]:
        rows = self._select("sale_items", {"select": SALE_ITEMS_SELECT, "sale_id": _eq(sale_id)})
        return [SaleLine.from_row(r) for r in rows]

    # ---------- Purchases ----------
    def create_purchase(self, fields: dict[str, Any]) -> str:
        return self._insert_one("purchases", fields)

    def list_purchases(
        self,
        store_id: Optional[str] = None,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
    ) -> list[Purchase]:
        params: list[tuple[str, Any]] = [("select", PURCHASES_SELECT), ("order", "created_at.desc")]
        if store_id is not None:
            params.append(("store_id", _eq(store_id)))
        if start_iso is not None:
            params.append(("created_at", f"gte.{start_iso}"))
        if end_iso is not None:
            params.append(("created_at", f"lte.{end_iso}"))
        r = self._request("GET", "purchases", params=params)
        return [Purchase.from_row(d) for d in (self._json(r) or [])]
