from .auth_service import AuthService
from .catalog_service import CatalogService
from .customer_service import CustomerService
from .inventory_service import InventoryService
from .purchase_service import PurchaseService
from .reporting_service import ReportingService
from .sales_service import SaleReceipt, SalesService
from .store_service import StoreService

__all__ = [
    "AuthService",
    "CatalogService",
    "CustomerService",
    "InventoryService",
    "PurchaseService",
    "ReportingService",
    "SaleReceipt",
    "SalesService",
    "StoreService",
]
