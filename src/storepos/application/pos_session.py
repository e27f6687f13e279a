from __future__ import annotations

import logging
from typing import Optional

from storepos.application.catalog_cache import CatalogCache
from storepos.application.notifications import Notification, Notifier
from storepos.domain.cart import Cart, CartTotals
from storepos.domain.errors import AppError, StoreNotFoundError, ValidationError
from storepos.domain.models import PAYMENT_METHODS, Customer, Operator
from storepos.services.catalog_service import CatalogService
from storepos.services.sales_service import SaleReceipt, SalesService

log = logging.getLogger("storepos.sales")

SALE_FAILED = "Failed to complete sale. Please try again."
SALE_COMPLETED = "Sale Completed Successfully!"


def sale_summary(receipt: SaleReceipt) -> str:
    text = f"Total: ฿{receipt.total:.2f} • {receipt.units} items sold"
    if receipt.discount > 0:
        text += f" • ฿{receipt.discount:.2f} discount applied"
    return text


class PosSession:
    """
    One operator's point-of-sale screen: catalog, cart, selected customer and
    payment method. Every user-facing outcome is reported through the
    notifier; nothing raised by a backend call escapes these methods.
    """

    def __init__(
        self,
        operator: Operator,
        catalog: CatalogService,
        sales: SalesService,
        notifier: Notifier,
        cache: CatalogCache | None = None,
    ):
        self.operator = operator
        self.catalog = catalog
        self.sales = sales
        self.notifier = notifier
        self.cache = cache or CatalogCache()
        self.cart = Cart()
        self.customer: Optional[Customer] = None
        self.payment_method = "cash"

    def _notify(self, kind: str, title: str, description: Optional[str] = None) -> None:
        self.notifier.notify(Notification(kind=kind, title=title, description=description))

    # ---------- catalog ----------
    def refresh_catalog(self) -> bool:
        """Reload products and customers. A failed load keeps the previous lists."""
        ok = True
        try:
            self.cache.replace_products(self.catalog.sellable_products(self.operator))
        except Exception as e:
            log.exception("catalog_load_failed operator=%s what=products: %s", self.operator.id, e)
            self._notify("error", "Failed to load products")
            ok = False

        try:
            self.cache.replace_customers(self.catalog.customers(self.operator))
        except Exception as e:
            log.exception("catalog_load_failed operator=%s what=customers: %s", self.operator.id, e)
            self._notify("error", "Failed to load customers")
            ok = False
        return ok

    # ---------- cart ----------
    def add_item(self, product_id: str) -> bool:
        product = self.cache.get_product(product_id)
        if product is None:
            self._notify("error", "Product not found")
            return False
        try:
            self.cart.add(product)
        except AppError as e:
            self._notify("error", str(e))
            return False
        self._notify("success", f"Added {product.name} to cart")
        return True

    def change_quantity(self, product_id: str, delta: int) -> bool:
        try:
            item = self.cart.change_quantity(product_id, delta)
        except AppError as e:
            self._notify("error", str(e))
            return False
        if item is None:
            self._notify("info", "Item removed from cart")
        return True

    def remove_item(self, product_id: str) -> None:
        self.cart.remove(product_id)
        self._notify("info", "Item removed from cart")

    def select_customer(self, customer_id: Optional[str]) -> bool:
        if customer_id is None:
            self.customer = None
            return True
        customer = self.cache.get_customer(customer_id)
        if customer is None:
            self._notify("error", "Customer not found")
            return False
        self.customer = customer
        return True

    def set_payment_method(self, method: str) -> None:
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Payment method must be one of {', '.join(PAYMENT_METHODS)}.")
        self.payment_method = method

    def totals(self) -> CartTotals:
        return self.cart.totals(self.customer)

    # ---------- checkout ----------
    def complete_sale(self) -> Optional[SaleReceipt]:
        if self.cart.is_empty:
            self._notify("error", "Cart is empty")
            return None

        try:
            receipt = self.sales.submit_sale(self.operator, self.cart, self.customer, self.payment_method)
        except StoreNotFoundError:
            # nothing was written
            self._notify("error", "Store not found")
            return None
        except Exception as e:
            log.exception("sale_failed operator=%s lines=%s: %s", self.operator.id, len(self.cart.items), e)
            self._notify("error", SALE_FAILED)
            self.refresh_catalog()
            return None

        self.cache.apply_sale(receipt.sold)
        self.cart.clear()
        self.customer = None
        self.payment_method = "cash"
        self._notify("success", SALE_COMPLETED, sale_summary(receipt))
        return receipt
