from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

ROLES = ("owner", "receptionist")
PAYMENT_METHODS = ("cash", "card", "other")
CUSTOMER_TYPES = ("regular", "vip", "wholesale")
DISCOUNT_TYPES = ("percentage", "fixed")

# customer_type -> (discount_type, percentage, fixed amount)
DISCOUNT_TYPE_DEFAULTS: dict[str, tuple[str, float, float]] = {
    "regular": ("percentage", 0.0, 0.0),
    "vip": ("percentage", 10.0, 50.0),
    "wholesale": ("fixed", 20.0, 100.0),
}


def _opt_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _joined(r: Mapping[str, Any], flat_key: str, table: str, column: str) -> Optional[str]:
    # sqlite joins flatten related columns, the rest backend nests them by table name
    value = r.get(flat_key)
    if value is None and isinstance(r.get(table), Mapping):
        value = r[table].get(column)
    return _opt_str(value)


@dataclass(frozen=True)
class Store:
    id: str
    name: str
    location: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Store":
        return cls(
            id=str(r["id"]),
            name=str(r["name"]),
            location=_opt_str(r.get("location")),
            address=_opt_str(r.get("address")),
            phone=_opt_str(r.get("phone")),
            created_at=_opt_str(r.get("created_at")),
        )


@dataclass(frozen=True)
class Operator:
    """The signed-in user a service call is made on behalf of."""

    id: str
    email: str
    full_name: str
    role: str
    store_id: Optional[str] = None

    @property
    def is_owner(self) -> bool:
        return self.role == "owner"

    @property
    def is_restricted(self) -> bool:
        return self.role == "receptionist"

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Operator":
        return cls(
            id=str(r["id"]),
            email=str(r["email"]),
            full_name=str(r["full_name"]),
            role=str(r["role"]),
            store_id=_opt_str(r.get("store_id")),
        )


@dataclass(frozen=True)
class Product:
    id: str
    store_id: str
    name: str
    buying_price: float
    selling_price: float
    stock: int
    low_stock_threshold: int = 10
    sku: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def unit_profit(self) -> float:
        return self.selling_price - self.buying_price

    @property
    def margin_pct(self) -> float:
        if self.selling_price == 0:
            return 0.0
        return (self.selling_price - self.buying_price) / self.selling_price * 100

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Product":
        return cls(
            id=str(r["id"]),
            store_id=str(r["store_id"]),
            name=str(r["name"]),
            buying_price=float(r["buying_price"]),
            selling_price=float(r["selling_price"]),
            stock=int(r["stock"]),
            low_stock_threshold=int(r.get("low_stock_threshold") or 0),
            sku=_opt_str(r.get("sku")),
            category=_opt_str(r.get("category")),
            description=_opt_str(r.get("description")),
            created_by=_opt_str(r.get("created_by")),
            created_at=_opt_str(r.get("created_at")),
        )


@dataclass(frozen=True)
class Customer:
    id: str
    store_id: str
    name: str
    customer_type: str = "regular"
    discount_type: str = "percentage"
    discount_percentage: float = 0.0
    discount_fixed_amount: float = 0.0
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Customer":
        return cls(
            id=str(r["id"]),
            store_id=str(r["store_id"]),
            name=str(r["name"]),
            customer_type=str(r.get("customer_type") or "regular"),
            discount_type=str(r.get("discount_type") or "percentage"),
            discount_percentage=float(r.get("discount_percentage") or 0),
            discount_fixed_amount=float(r.get("discount_fixed_amount") or 0),
            phone=_opt_str(r.get("phone")),
            email=_opt_str(r.get("email")),
            notes=_opt_str(r.get("notes")),
        )


@dataclass(frozen=True)
class SaleHeader:
    id: str
    store_id: str
    total_amount: float
    profit: float
    payment_method: Optional[str]
    sold_by: Optional[str]
    customer_id: Optional[str]
    discount_amount: float
    original_amount: Optional[float]
    created_at: str
    customer_name: Optional[str] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "SaleHeader":
        original = r.get("original_amount")
        return cls(
            id=str(r["id"]),
            store_id=str(r["store_id"]),
            total_amount=float(r["total_amount"]),
            profit=float(r["profit"]),
            payment_method=_opt_str(r.get("payment_method")),
            sold_by=_opt_str(r.get("sold_by")),
            customer_id=_opt_str(r.get("customer_id")),
            discount_amount=float(r.get("discount_amount") or 0),
            original_amount=(float(original) if original is not None else None),
            created_at=str(r["created_at"]),
            customer_name=_joined(r, "customer_name", "customers", "name"),
        )


@dataclass(frozen=True)
class SaleLine:
    sale_id: str
    product_id: str
    quantity: int
    price_at_sale: float
    cost_at_sale: float
    subtotal: float
    profit: float
    product_name: Optional[str] = None
    sku: Optional[str] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "SaleLine":
        return cls(
            sale_id=str(r["sale_id"]),
            product_id=str(r["product_id"]),
            quantity=int(r["quantity"]),
            price_at_sale=float(r["price_at_sale"]),
            cost_at_sale=float(r["cost_at_sale"]),
            subtotal=float(r["subtotal"]),
            profit=float(r["profit"]),
            product_name=_joined(r, "product_name", "products", "name"),
            sku=_joined(r, "sku", "products", "sku"),
        )


@dataclass(frozen=True)
class Purchase:
    id: str
    store_id: str
    product_id: str
    quantity: int
    cost_per_unit: float
    total_cost: float
    supplier: Optional[str]
    notes: Optional[str]
    purchased_by: Optional[str]
    created_at: str
    product_name: Optional[str] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Purchase":
        return cls(
            id=str(r["id"]),
            store_id=str(r["store_id"]),
            product_id=str(r["product_id"]),
            quantity=int(r["quantity"]),
            cost_per_unit=float(r["cost_per_unit"]),
            total_cost=float(r["total_cost"]),
            supplier=_opt_str(r.get("supplier")),
            notes=_opt_str(r.get("notes")),
            purchased_by=_opt_str(r.get("purchased_by")),
            created_at=str(r["created_at"]),
            product_name=_joined(r, "product_name", "products", "name"),
        )
