from __future__ import annotations

from typing import Any, Optional

from storepos.domain.errors import NotFoundError, ValidationError
from storepos.domain.filters import customer_matches
from storepos.domain.models import (
    CUSTOMER_TYPES,
    DISCOUNT_TYPE_DEFAULTS,
    DISCOUNT_TYPES,
    Customer,
    Operator,
)
from storepos.services.auth_service import AuthService


def _validate_discount(customer_type: str, discount_type: str, percentage: float, fixed: float) -> None:
    if customer_type not in CUSTOMER_TYPES:
        raise ValidationError(f"Customer type must be one of {', '.join(CUSTOMER_TYPES)}.")
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"Discount type must be one of {', '.join(DISCOUNT_TYPES)}.")
    if not 0 <= percentage <= 100:
        raise ValidationError("Discount percentage must be between 0 and 100.")
    if fixed < 0:
        raise ValidationError("Fixed discount must be >= 0.")


class CustomerService:
    def __init__(self, repo, auth: AuthService):
        self.repo = repo
        self.auth = auth

    def list_customers(self, operator: Operator, query: str = "", store_id: Optional[str] = None) -> list[Customer]:
        scope = self.auth.store_scope(operator)
        if scope is not None:
            store_id = scope
        return [c for c in self.repo.list_customers(store_id=store_id) if customer_matches(c, query)]

    def get_customer(self, operator: Operator, customer_id: str) -> Customer:
        c = self.repo.get_customer(customer_id)
        if not c:
            raise NotFoundError("Customer not found.")
        self.auth.require_store_access(operator, c.store_id)
        return c

    def create_customer(
        self,
        operator: Operator,
        store_id: Optional[str],
        name: str,
        customer_type: str = "regular",
        discount_type: Optional[str] = None,
        discount_percentage: Optional[float] = None,
        discount_fixed_amount: Optional[float] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> str:
        """Discount values left as None take the defaults of ``customer_type``."""
        self.auth.require_action(operator, "manage_customers")
        store_id = self.auth.store_scope(operator) or store_id
        if not store_id:
            raise ValidationError("Store is required.")

        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required.")

        customer_type = (customer_type or "regular").strip().lower()
        default_type, default_pct, default_fixed = DISCOUNT_TYPE_DEFAULTS.get(customer_type, ("percentage", 0.0, 0.0))
        discount_type = discount_type or default_type
        pct = float(default_pct if discount_percentage is None else discount_percentage)
        fixed = float(default_fixed if discount_fixed_amount is None else discount_fixed_amount)
        _validate_discount(customer_type, discount_type, pct, fixed)

        return self.repo.add_customer(
            {
                "store_id": store_id,
                "name": name,
                "phone": (phone or "").strip() or None,
                "email": (email or "").strip() or None,
                "customer_type": customer_type,
                "discount_type": discount_type,
                "discount_percentage": pct,
                "discount_fixed_amount": fixed,
                "notes": (notes or "").strip() or None,
            }
        )

    def update_customer(self, operator: Operator, customer_id: str, **changes: Any) -> Customer:
        self.auth.require_action(operator, "manage_customers")
        current = self.get_customer(operator, customer_id)

        name = (changes.get("name", current.name) or "").strip()
        if not name:
            raise ValidationError("Name is required.")
        customer_type = changes.get("customer_type", current.customer_type)
        discount_type = changes.get("discount_type", current.discount_type)
        pct = float(changes.get("discount_percentage", current.discount_percentage))
        fixed = float(changes.get("discount_fixed_amount", current.discount_fixed_amount))
        _validate_discount(customer_type, discount_type, pct, fixed)

        fields: dict[str, Any] = {
            "name": name,
            "customer_type": customer_type,
            "discount_type": discount_type,
            "discount_percentage": pct,
            "discount_fixed_amount": fixed,
        }
        for key in ("phone", "email", "notes"):
            if key in changes:
                fields[key] = (changes[key] or "").strip() or None

        if not self.repo.update_customer(customer_id, fields):
            raise NotFoundError("Customer not found.")
        return self.get_customer(operator, customer_id)
