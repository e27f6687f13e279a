from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from storepos.domain.errors import NotFoundError, ValidationError
from storepos.domain.filters import purchase_matches
from storepos.domain.models import Operator, Purchase
from storepos.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from storepos.services.auth_service import AuthService

log = logging.getLogger(__name__)


class PurchaseService:
    def __init__(self, repo, auth: AuthService, uow_factory: Callable[[], UnitOfWork] | None = None):
        self.repo = repo
        self.auth = auth
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def record_purchase(
        self,
        operator: Operator,
        store_id: str,
        product_id: str,
        quantity: int,
        cost_per_unit: float,
        supplier: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> str:
        """
        Restock one product. The backend adds ``quantity`` to the product's stock
        in the same write as the purchase row.
        """
        self.auth.require_action(operator, "record_purchase")

        qty = int(quantity)
        unit_cost = float(cost_per_unit)
        if qty <= 0:
            raise ValidationError("Quantity must be >= 1.")
        if unit_cost < 0:
            raise ValidationError("Cost per unit must be >= 0.")

        prod = self.repo.get_product(product_id)
        if not prod:
            raise NotFoundError("Product not found.")
        if prod.store_id != store_id:
            raise ValidationError("Product does not belong to the selected store.")

        with self.uow_factory() as uow:
            purchase_id = uow.record_purchase(
                {
                    "store_id": store_id,
                    "product_id": product_id,
                    "quantity": qty,
                    "cost_per_unit": unit_cost,
                    "total_cost": qty * unit_cost,
                    "supplier": (supplier or "").strip() or None,
                    "notes": (notes or "").strip() or None,
                    "purchased_by": operator.id,
                }
            )
        log.info("purchase_recorded purchase_id=%s product=%s qty=%s actor=%s", purchase_id, product_id, qty, operator.id)
        return purchase_id

    def list_purchases(
        self,
        operator: Operator,
        query: str = "",
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
    ) -> list[Purchase]:
        self.auth.require_action(operator, "view_purchases")
        rows = self.repo.list_purchases(start_iso=start_iso, end_iso=end_iso)
        return [p for p in rows if purchase_matches(p, query)]

    @staticmethod
    def purchase_totals(purchases: Iterable[Purchase]) -> tuple[float, int]:
        total_cost = 0.0
        total_units = 0
        for p in purchases:
            total_cost += float(p.total_cost)
            total_units += int(p.quantity)
        return total_cost, total_units
