from __future__ import annotations

import logging
import shutil
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from storepos.domain.errors import InsufficientStockError, NotFoundError, ValidationError
from storepos.domain.models import Customer, Operator, Product, Purchase, SaleHeader, SaleLine, Store

log = logging.getLogger("storepos.backend")

STORE_COLUMNS = ("name", "location", "address", "phone")
PROFILE_COLUMNS = ("email", "full_name", "role", "store_id", "avatar_url")
PRODUCT_COLUMNS = (
    "store_id", "name", "description", "sku", "category", "buying_price",
    "selling_price", "stock", "low_stock_threshold", "image_url", "created_by",
)
CUSTOMER_COLUMNS = (
    "store_id", "name", "phone", "email", "customer_type", "discount_type",
    "discount_percentage", "discount_fixed_amount", "notes",
)
SALE_COLUMNS = (
    "store_id", "total_amount", "profit", "payment_method", "sold_by",
    "customer_id", "discount_amount", "original_amount", "created_at",
)
SALE_ITEM_COLUMNS = (
    "sale_id", "product_id", "quantity", "price_at_sale", "cost_at_sale", "subtotal", "profit",
)
PURCHASE_COLUMNS = (
    "store_id", "product_id", "quantity", "cost_per_unit", "total_cost",
    "supplier", "notes", "purchased_by", "created_at",
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _now_local() -> str:
    return datetime.now().replace(microsecond=0).isoformat(sep=" ")


class SqliteRepository:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
                (2, self._migration_v2_indexes),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
                log.info("migration_applied version=%s db=%s", version, self.db_path)
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS stores (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            location TEXT,
            address TEXT,
            phone TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now','localtime')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now','localtime'))
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            full_name TEXT NOT NULL,
            role TEXT NOT NULL CHECK(role IN ('owner','receptionist')),
            store_id TEXT REFERENCES stores(id),
            avatar_url TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now','localtime')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now','localtime'))
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS products (
            id TEXT PRIMARY KEY,
            store_id TEXT NOT NULL REFERENCES stores(id),
            name TEXT NOT NULL,
            description TEXT,
            sku TEXT,
            category TEXT,
            buying_price REAL NOT NULL CHECK(buying_price >= 0),
            selling_price REAL NOT NULL CHECK(selling_price >= 0),
            stock INTEGER NOT NULL DEFAULT 0 CHECK(stock >= 0),
            low_stock_threshold INTEGER NOT NULL DEFAULT 10 CHECK(low_stock_threshold >= 0),
            image_url TEXT,
            created_by TEXT REFERENCES profiles(id),
            created_at TEXT NOT NULL DEFAULT (datetime('now','localtime')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now','localtime'))
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS customers (
            id TEXT PRIMARY KEY,
            store_id TEXT NOT NULL REFERENCES stores(id),
            name TEXT NOT NULL,
            phone TEXT,
            email TEXT,
            customer_type TEXT NOT NULL DEFAULT 'regular' CHECK(customer_type IN ('regular','vip','wholesale')),
            discount_type TEXT NOT NULL DEFAULT 'percentage' CHECK(discount_type IN ('percentage','fixed')),
            discount_percentage REAL NOT NULL DEFAULT 0 CHECK(discount_percentage BETWEEN 0 AND 100),
            discount_fixed_amount REAL NOT NULL DEFAULT 0 CHECK(discount_fixed_amount >= 0),
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now','localtime')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now','localtime'))
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sales (
            id TEXT PRIMARY KEY,
            store_id TEXT NOT NULL REFERENCES stores(id),
            total_amount REAL NOT NULL,
            profit REAL NOT NULL,
            payment_method TEXT CHECK(payment_method IN ('cash','card','other')),
            sold_by TEXT REFERENCES profiles(id),
            customer_id TEXT REFERENCES customers(id),
            discount_amount REAL NOT NULL DEFAULT 0,
            original_amount REAL,
            created_at TEXT NOT NULL
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sale_items (
            id TEXT PRIMARY KEY,
            sale_id TEXT NOT NULL,
            product_id TEXT NOT NULL,
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            price_at_sale REAL NOT NULL,
            cost_at_sale REAL NOT NULL,
            subtotal REAL NOT NULL,
            profit REAL NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now','localtime')),
            FOREIGN KEY(sale_id) REFERENCES sales(id) ON DELETE CASCADE,
            FOREIGN KEY(product_id) REFERENCES products(id),
            UNIQUE(sale_id, product_id)
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS purchases (
            id TEXT PRIMARY KEY,
            store_id TEXT NOT NULL REFERENCES stores(id),
            product_id TEXT NOT NULL REFERENCES products(id),
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            cost_per_unit REAL NOT NULL CHECK(cost_per_unit >= 0),
            total_cost REAL NOT NULL CHECK(total_cost >= 0),
            supplier TEXT,
            notes TEXT,
            purchased_by TEXT REFERENCES profiles(id),
            created_at TEXT NOT NULL
        )
        """
        )

    def _migration_v2_indexes(self, cur: sqlite3.Cursor) -> None:
        cur.execute("CREATE INDEX IF NOT EXISTS idx_products_store_name ON products(store_id, name)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_customers_store_name ON customers(store_id, name)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_sales_store_created ON sales(store_id, created_at)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_purchases_created ON purchases(created_at)")

    @staticmethod
    def _insert(cur: sqlite3.Cursor, table: str, columns: Sequence[str], fields: dict[str, Any]) -> str:
        row_id = str(fields.get("id") or _new_id())
        cols = [c for c in columns if c in fields]
        placeholders = ", ".join("?" for _ in range(len(cols) + 1))
        cur.execute(
            f"INSERT INTO {table} (id, {', '.join(cols)}) VALUES ({placeholders})",
            (row_id, *[fields[c] for c in cols]),
        )
        return row_id

    def _update(self, table: str, columns: Sequence[str], row_id: str, fields: dict[str, Any]) -> bool:
        cols = [c for c in columns if c in fields]
        if not cols:
            return False
        assignments = ", ".join(f"{c}=?" for c in cols)
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE {table} SET {assignments}, updated_at=datetime('now','localtime') WHERE id=?",
                (*[fields[c] for c in cols], str(row_id)),
            )
            changed = cur.rowcount > 0
            conn.commit()
            return bool(changed)
        finally:
            conn.close()

    def _insert_one(self, table: str, columns: Sequence[str], fields: dict[str, Any]) -> str:
        conn = self._conn()
        cur = conn.cursor()
        try:
            row_id = self._insert(cur, table, columns, fields)
            conn.commit()
            return row_id
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(sql, tuple(params))
        rows = [dict(r) for r in cur.fetchall()]
        conn.close()
        return rows

    def _fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[dict[str, Any]]:
        rows = self._fetch_all(sql, params)
        return rows[0] if rows else None

    # ---------- Stores ----------
    def list_stores(self) -> list[Store]:
        return [Store.from_row(r) for r in self._fetch_all("SELECT * FROM stores ORDER BY name")]

    def get_store(self, store_id: str) -> Optional[Store]:
        r = self._fetch_one("SELECT * FROM stores WHERE id=?", (str(store_id),))
        return Store.from_row(r) if r else None

    def add_store(self, fields: dict[str, Any]) -> str:
        return self._insert_one("stores", STORE_COLUMNS, fields)

    # ---------- Operators ----------
    def get_operator(self, operator_id: str) -> Optional[Operator]:
        r = self._fetch_one("SELECT * FROM profiles WHERE id=?", (str(operator_id),))
        return Operator.from_row(r) if r else None

    def add_operator(self, fields: dict[str, Any]) -> str:
        return self._insert_one("profiles", PROFILE_COLUMNS, fields)

    def update_operator_name(self, operator_id: str, full_name: str) -> bool:
        return self._update("profiles", PROFILE_COLUMNS, operator_id, {"full_name": full_name})

    # ---------- Products ----------
    def list_products(self, store_id: Optional[str] = None, in_stock_only: bool = False) -> list[Product]:
        where, params = [], []
        if in_stock_only:
            where.append("stock > 0")
        if store_id is not None:
            where.append("store_id = ?")
            params.append(str(store_id))
        sql = "SELECT * FROM products"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY name"
        return [Product.from_row(r) for r in self._fetch_all(sql, params)]

    def get_product(self, product_id: str) -> Optional[Product]:
        r = self._fetch_one("SELECT * FROM products WHERE id=?", (str(product_id),))
        return Product.from_row(r) if r else None

    def count_products(self, store_id: Optional[str] = None) -> int:
        if store_id is None:
            r = self._fetch_one("SELECT COUNT(*) AS n FROM products")
        else:
            r = self._fetch_one("SELECT COUNT(*) AS n FROM products WHERE store_id=?", (str(store_id),))
        return int(r["n"]) if r else 0

    def low_stock_products(self, store_id: Optional[str] = None, limit: int = 5) -> list[Product]:
        sql = "SELECT * FROM products WHERE stock <= low_stock_threshold"
        params: list[Any] = []
        if store_id is not None:
            sql += " AND store_id = ?"
            params.append(str(store_id))
        sql += " ORDER BY stock ASC, name ASC LIMIT ?"
        params.append(int(limit))
        return [Product.from_row(r) for r in self._fetch_all(sql, params)]

    def add_product(self, fields: dict[str, Any]) -> str:
        return self._insert_one("products", PRODUCT_COLUMNS, fields)

    def update_product(self, product_id: str, fields: dict[str, Any]) -> bool:
        return self._update("products", PRODUCT_COLUMNS, product_id, fields)

    def delete_product(self, product_id: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("DELETE FROM products WHERE id=?", (str(product_id),))
            removed = cur.rowcount > 0
            conn.commit()
            return bool(removed)
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise ValidationError("Product has sales or purchases recorded and cannot be deleted.") from exc
        finally:
            conn.close()

    # ---------- Customers ----------
    def list_customers(self, store_id: Optional[str] = None) -> list[Customer]:
        if store_id is None:
            rows = self._fetch_all("SELECT * FROM customers ORDER BY name")
        else:
            rows = self._fetch_all("SELECT * FROM customers WHERE store_id=? ORDER BY name", (str(store_id),))
        return [Customer.from_row(r) for r in rows]

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        r = self._fetch_one("SELECT * FROM customers WHERE id=?", (str(customer_id),))
        return Customer.from_row(r) if r else None

    def add_customer(self, fields: dict[str, Any]) -> str:
        return self._insert_one("customers", CUSTOMER_COLUMNS, fields)

    def update_customer(self, customer_id: str, fields: dict[str, Any]) -> bool:
        return self._update("customers", CUSTOMER_COLUMNS, customer_id, fields)

    # ---------- Sales ----------
    def create_sale_with_items(self, header: dict[str, Any], items: Iterable[dict[str, Any]]) -> str:
        """Write the sale, its lines and the stock decrements as one transaction.

        Each decrement only applies while enough stock is left, so a stale
        cart can never drive a product below zero.
        """
        items = list(items)
        conn = self._conn()
        cur = conn.cursor()
        try:
            header = {**header, "created_at": header.get("created_at") or _now_local()}
            sale_id = self._insert(cur, "sales", SALE_COLUMNS, header)

            for it in items:
                pid = str(it["product_id"])
                qty = int(it["quantity"])
                self._insert(cur, "sale_items", SALE_ITEM_COLUMNS, {**it, "sale_id": sale_id})

                cur.execute(
                    "UPDATE products SET stock = stock - ? WHERE id = ? AND stock >= ?",
                    (qty, pid, qty),
                )
                if cur.rowcount == 0:
                    cur.execute("SELECT name, stock FROM products WHERE id=?", (pid,))
                    row = cur.fetchone()
                    if not row:
                        raise NotFoundError(f"Product not found: {pid}")
                    raise InsufficientStockError(f"Not enough stock for {row['name']}. Available: {row['stock']}")

            conn.commit()
            return sale_id
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_sales(
        self,
        store_id: Optional[str] = None,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        newest_first: bool = True,
        query: Optional[str] = None,
    ) -> tuple[list[SaleHeader], int]:
        where, params = [], []
        if store_id is not None:
            where.append("s.store_id = ?")
            params.append(str(store_id))
        if start_iso is not None:
            where.append("s.created_at >= ?")
            params.append(start_iso)
        if end_iso is not None:
            where.append("s.created_at <= ?")
            params.append(end_iso)
        if query:
            where.append("s.id LIKE ?")
            params.append(f"%{query.strip()}%")
        clause = (" WHERE " + " AND ".join(where)) if where else ""

        count_row = self._fetch_one(f"SELECT COUNT(*) AS n FROM sales s{clause}", params)
        total = int(count_row["n"]) if count_row else 0

        order = "DESC" if newest_first else "ASC"
        rows = self._fetch_all(
            f"""
            SELECT s.*, c.name AS customer_name
            FROM sales s
            LEFT JOIN customers c ON c.id = s.customer_id
            {clause}
            ORDER BY s.created_at {order}
            LIMIT ? OFFSET ?
            """,
            [*params, int(limit) if limit is not None else -1, int(offset)],
        )
        return [SaleHeader.from_row(r) for r in rows], total

    def get_sale(self, sale_id: str) -> Optional[SaleHeader]:
        r = self._fetch_one(
            """
            SELECT s.*, c.name AS customer_name
            FROM sales s
            LEFT JOIN customers c ON c.id = s.customer_id
            WHERE s.id = ?
            """,
            (str(sale_id),),
        )
        return SaleHeader.from_row(r) if r else None

    def sale_items_for_sale(self, sale_id: str) -> list[SaleLine]:
        rows = self._fetch_all(
            """
            SELECT si.*, p.name AS product_name, p.sku AS sku
            FROM sale_items si
            LEFT JOIN products p ON p.id = si.product_id
            WHERE si.sale_id = ?
            ORDER BY p.name
            """,
            (str(sale_id),),
        )
        return [SaleLine.from_row(r) for r in rows]

    # ---------- Purchases ----------
    def create_purchase(self, fields: dict[str, Any]) -> str:
        conn = self._conn()
        cur = conn.cursor()
        try:
            fields = {**fields, "created_at": fields.get("created_at") or _now_local()}
            purchase_id = self._insert(cur, "purchases", PURCHASE_COLUMNS, fields)
            cur.execute(
                "UPDATE products SET stock = stock + ?, updated_at=datetime('now','localtime') WHERE id = ? AND store_id = ?",
                (int(fields["quantity"]), str(fields["product_id"]), str(fields["store_id"])),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Product not found in this store.")
            conn.commit()
            return purchase_id
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_purchases(
        self,
        store_id: Optional[str] = None,
        start_iso: Optional[str] = None,
        end_iso: Optional[str] = None,
    ) -> list[Purchase]:
        where, params = [], []
        if store_id is not None:
            where.append("pu.store_id = ?")
            params.append(str(store_id))
        if start_iso is not None:
            where.append("pu.created_at >= ?")
            params.append(start_iso)
        if end_iso is not None:
            where.append("pu.created_at <= ?")
            params.append(end_iso)
        clause = (" WHERE " + " AND ".join(where)) if where else ""
        rows = self._fetch_all(
            f"""
            SELECT pu.*, p.name AS product_name
            FROM purchases pu
            LEFT JOIN products p ON p.id = pu.product_id
            {clause}
            ORDER BY pu.created_at DESC
            """,
            params,
        )
        return [Purchase.from_row(r) for r in rows]

    def integrity_check(self) -> str:
        r = self._fetch_one("PRAGMA integrity_check")
        return str(next(iter(r.values()))) if r else "unknown"
