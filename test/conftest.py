import sys
import uuid
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_repo(tmp_path: Path, name: str = "pos.db"):
    from storepos.repositories.sqlite_repo import SqliteRepository

    repo = SqliteRepository(tmp_path / name)
    repo.init_db()
    return repo


def seed_store(repo, name: str = "Main Store") -> str:
    return repo.add_store({"name": name})


def seed_operator(repo, role: str = "owner", store_id=None):
    op_id = repo.add_operator(
        {
            "email": f"{role}-{uuid.uuid4().hex[:8]}@shop.test",
            "full_name": role.title(),
            "role": role,
            "store_id": store_id,
        }
    )
    return repo.get_operator(op_id)


def seed_product(repo, store_id: str, name: str = "Product A", buying: float = 60.0, selling: float = 100.0,
                 stock: int = 5, threshold: int = 2, sku=None):
    pid = repo.add_product(
        {
            "store_id": store_id,
            "name": name,
            "sku": sku,
            "buying_price": buying,
            "selling_price": selling,
            "stock": stock,
            "low_stock_threshold": threshold,
        }
    )
    return repo.get_product(pid)


def seed_customer(repo, store_id: str, name: str = "Customer", discount_type: str = "percentage",
                  percentage: float = 0.0, fixed: float = 0.0, customer_type: str = "regular"):
    cid = repo.add_customer(
        {
            "store_id": store_id,
            "name": name,
            "customer_type": customer_type,
            "discount_type": discount_type,
            "discount_percentage": percentage,
            "discount_fixed_amount": fixed,
        }
    )
    return repo.get_customer(cid)


def seed_sale(repo, store_id: str, product, qty: int, created_at: str, sold_by=None, discount: float = 0.0) -> str:
    subtotal = product.selling_price * qty
    line_profit = (product.selling_price - product.buying_price) * qty
    return repo.create_sale_with_items(
        {
            "store_id": store_id,
            "total_amount": subtotal - discount,
            "profit": line_profit - discount,
            "payment_method": "cash",
            "sold_by": sold_by,
            "discount_amount": discount,
            "original_amount": subtotal,
            "created_at": created_at,
        },
        [
            {
                "product_id": product.id,
                "quantity": qty,
                "price_at_sale": product.selling_price,
                "cost_at_sale": product.buying_price,
                "subtotal": subtotal,
                "profit": line_profit,
            }
        ],
    )
