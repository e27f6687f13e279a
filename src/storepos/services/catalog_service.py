from __future__ import annotations

import logging

from storepos.domain.models import Customer, Operator, Product
from storepos.services.auth_service import AuthService

log = logging.getLogger(__name__)


class CatalogService:
    """Reads what a point-of-sale screen offers: sellable products and customers."""

    def __init__(self, repo, auth: AuthService):
        self.repo = repo
        self.auth = auth

    def sellable_products(self, operator: Operator) -> list[Product]:
        self.auth.require_action(operator, "view_catalog")
        store_id = self.auth.store_scope(operator)
        products = self.repo.list_products(store_id=store_id, in_stock_only=True)
        log.debug("catalog_loaded operator=%s store=%s products=%s", operator.id, store_id, len(products))
        return products

    def customers(self, operator: Operator) -> list[Customer]:
        self.auth.require_action(operator, "view_catalog")
        return self.repo.list_customers(store_id=self.auth.store_scope(operator))
