from __future__ import annotations

from dataclasses import replace
from typing import Optional

from storepos.domain.errors import AuthorizationError, NotFoundError, ValidationError
from storepos.domain.models import Operator


PERMISSIONS: dict[str, set[str]] = {
    "view_catalog": {"owner", "receptionist"},
    "create_sale": {"owner", "receptionist"},
    "view_sales": {"owner", "receptionist"},
    "create_product": {"owner", "receptionist"},
    "edit_product": {"owner", "receptionist"},
    "delete_product": {"owner"},
    "manage_customers": {"owner", "receptionist"},
    "record_purchase": {"owner"},
    "view_purchases": {"owner"},
    "manage_stores": {"owner"},
    "view_dashboard": {"owner"},
    "export_report": {"owner"},
}


class AuthService:
    """Role checks for an explicitly passed operator. Sign-in happens elsewhere."""

    def __init__(self, repo):
        self.repo = repo

    def get_operator(self, operator_id: str) -> Operator:
        op = self.repo.get_operator(operator_id)
        if not op:
            raise NotFoundError("Profile not found.")
        return op

    def can(self, operator: Operator, action: str) -> bool:
        allowed_roles = PERMISSIONS.get(action)
        if not allowed_roles:
            return False
        return operator.role in allowed_roles

    def require_action(self, operator: Operator, action: str) -> None:
        if not self.can(operator, action):
            raise AuthorizationError(f"Role '{operator.role}' is not allowed to perform '{action}'.")

    def store_scope(self, operator: Operator) -> Optional[str]:
        """Store every query must be filtered by, or None for unrestricted operators."""
        if not operator.is_restricted:
            return None
        if not operator.store_id:
            raise AuthorizationError("No store is assigned to this account.")
        return operator.store_id

    def require_store_access(self, operator: Operator, store_id: str) -> None:
        scope = self.store_scope(operator)
        if scope is not None and scope != store_id:
            raise AuthorizationError("This account can only work with its assigned store.")

    def update_profile_name(self, operator: Operator, full_name: str) -> Operator:
        name = (full_name or "").strip()
        if not name:
            raise ValidationError("Full name is required.")
        if not self.repo.update_operator_name(operator.id, name):
            raise NotFoundError("Profile not found.")
        return replace(operator, full_name=name)
