from .models import Store, Operator, Product, Customer, SaleHeader, SaleLine, Purchase
from .errors import (
    AppError,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    AuthorizationError,
    BackendError,
)
from .cart import Cart, CartItem, CartTotals, compute_discount

__all__ = [
    "Store",
    "Operator",
    "Product",
    "Customer",
    "SaleHeader",
    "SaleLine",
    "Purchase",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "AuthorizationError",
    "BackendError",
    "Cart",
    "CartItem",
    "CartTotals",
    "compute_discount",
]
