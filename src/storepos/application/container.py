from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from storepos.application.catalog_cache import CatalogCache
from storepos.application.notifications import Notifier
from storepos.application.pos_session import PosSession
from storepos.config import BackendSettings, get_app_paths
from storepos.domain.models import Operator
from storepos.repositories.contracts import BackendRepository
from storepos.repositories.rest_repo import RestRepository
from storepos.repositories.sqlite_repo import SqliteRepository
from storepos.services.auth_service import AuthService
from storepos.services.catalog_service import CatalogService
from storepos.services.customer_service import CustomerService
from storepos.services.inventory_service import InventoryService
from storepos.services.purchase_service import PurchaseService
from storepos.services.reporting_service import ReportingService
from storepos.services.sales_service import SalesService
from storepos.services.store_service import StoreService


@dataclass(frozen=True)
class AppContainer:
    repo: BackendRepository
    auth: AuthService
    catalog: CatalogService
    inventory: InventoryService
    customers: CustomerService
    purchases: PurchaseService
    sales: SalesService
    stores: StoreService
    reporting: ReportingService

    def open_session(self, operator: Operator, notifier: Notifier) -> PosSession:
        """New point-of-sale session with its own cart, loaded once from the backend."""
        session = PosSession(operator, self.catalog, self.sales, notifier, cache=CatalogCache())
        session.refresh_catalog()
        return session


def build_repository(settings: BackendSettings) -> BackendRepository:
    if settings.kind == "rest":
        return RestRepository(settings)

    db_path: Path = settings.db_path or get_app_paths().db_path
    repo = SqliteRepository(db_path)
    repo.init_db()
    return repo


def build_container(settings: BackendSettings, repo: Optional[BackendRepository] = None) -> AppContainer:
    repo = repo if repo is not None else build_repository(settings)
    auth = AuthService(repo)

    return AppContainer(
        repo=repo,
        auth=auth,
        catalog=CatalogService(repo, auth),
        inventory=InventoryService(repo, auth),
        customers=CustomerService(repo, auth),
        purchases=PurchaseService(repo, auth),
        sales=SalesService(repo, auth),
        stores=StoreService(repo, auth),
        reporting=ReportingService(repo, auth),
    )
