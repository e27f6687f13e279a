from __future__ import annotations

from typing import Optional

from storepos.domain.errors import ValidationError
from storepos.domain.models import Operator, Store
from storepos.services.auth_service import AuthService


class StoreService:
    def __init__(self, repo, auth: AuthService):
        self.repo = repo
        self.auth = auth

    def list_stores(self, operator: Operator) -> list[Store]:
        scope = self.auth.store_scope(operator)
        stores = self.repo.list_stores()
        if scope is None:
            return stores
        return [s for s in stores if s.id == scope]

    def create_store(
        self,
        operator: Operator,
        name: str,
        location: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> str:
        self.auth.require_action(operator, "manage_stores")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Store name is required.")
        return self.repo.add_store(
            {
                "name": name,
                "location": (location or "").strip() or None,
                "address": (address or "").strip() or None,
                "phone": (phone or "").strip() or None,
            }
        )
