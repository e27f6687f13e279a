from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from storepos.domain.cart import Cart
from storepos.domain.errors import AuthorizationError, NotFoundError, StoreNotFoundError, ValidationError
from storepos.domain.models import PAYMENT_METHODS, Customer, Operator, SaleHeader, SaleLine
from storepos.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from storepos.services.auth_service import AuthService

log = logging.getLogger("storepos.sales")


@dataclass(frozen=True)
class SaleReceipt:
    sale_id: str
    store_id: str
    subtotal: float
    discount: float
    total: float
    profit: float
    units: int
    lines: int
    sold: dict[str, int]


class SalesService:
    def __init__(
        self,
        repo,
        auth: AuthService,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.auth = auth
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def _resolve_store(self, operator: Operator, cart: Cart) -> str:
        stores = cart.store_ids()
        if len(stores) > 1:
            raise ValidationError("Cart mixes products from different stores.")

        scope = self.auth.store_scope(operator)
        if scope is not None:
            if stores and stores != {scope}:
                raise AuthorizationError("Cart holds products from another store.")
            return scope

        # unrestricted operators sell for the store the cart belongs to
        store_id = cart.items[0].product.store_id if cart.items else None
        if not store_id:
            raise StoreNotFoundError("Store not found.")
        return store_id

    def submit_sale(
        self,
        operator: Operator,
        cart: Cart,
        customer: Optional[Customer] = None,
        payment_method: str = "cash",
    ) -> SaleReceipt:
        if cart.is_empty:
            raise ValidationError("Cart is empty.")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Payment method must be one of {', '.join(PAYMENT_METHODS)}.")
        self.auth.require_action(operator, "create_sale")

        store_id = self._resolve_store(operator, cart)
        if customer is not None and customer.store_id != store_id:
            raise ValidationError("Customer belongs to another store.")

        totals = cart.totals(customer)
        header = {
            "store_id": store_id,
            "total_amount": totals.total,
            "profit": totals.profit,
            "payment_method": payment_method,
            "sold_by": operator.id,
            "customer_id": customer.id if customer else None,
            "discount_amount": totals.discount,
            "original_amount": totals.subtotal,
        }
        items = [
            {
                "product_id": it.product.id,
                "quantity": it.quantity,
                "price_at_sale": it.product.selling_price,
                "cost_at_sale": it.product.buying_price,
                "subtotal": it.subtotal,
                "profit": it.profit,
            }
            for it in cart.items
        ]

        with self.uow_factory() as uow:
            sale_id = uow.record_sale(header, items)

        if totals.profit < 0:
            log.warning("sale_negative_profit sale_id=%s profit=%.2f discount=%.2f", sale_id, totals.profit, totals.discount)
        log.info(
            "sale_created sale_id=%s store=%s items=%s total=%.2f discount=%.2f actor=%s",
            sale_id, store_id, len(items), totals.total, totals.discount, operator.id,
        )
        return SaleReceipt(
            sale_id=sale_id,
            store_id=store_id,
            subtotal=totals.subtotal,
            discount=totals.discount,
            total=totals.total,
            profit=totals.profit,
            units=totals.units,
            lines=len(items),
            sold={it.product.id: it.quantity for it in cart.items},
        )

    def list_sales(
        self,
        operator: Operator,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        query: Optional[str] = None,
    ) -> tuple[list[SaleHeader], int]:
        self.auth.require_action(operator, "view_sales")
        return self.repo.list_sales(
            store_id=self.auth.store_scope(operator),
            start_iso=start_iso,
            end_iso=end_iso,
            limit=limit,
            offset=offset,
            query=query,
        )

    def sale_details(self, operator: Operator, sale_id: str) -> tuple[SaleHeader, list[SaleLine]]:
        self.auth.require_action(operator, "view_sales")
        header = self.repo.get_sale(sale_id)
        if header is None:
            raise NotFoundError("Sale not found.")
        self.auth.require_store_access(operator, header.store_id)
        return header, self.repo.sale_items_for_sale(sale_id)
