import logging
import sqlite3
from pathlib import Path

import pytest

from conftest import make_repo, seed_customer, seed_operator, seed_product, seed_store

from storepos.domain.cart import Cart
from storepos.domain.errors import (
    AuthorizationError,
    BackendError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from storepos.repositories.sqlite_repo import SqliteRepository
from storepos.services.auth_service import AuthService
from storepos.services.sales_service import SalesService


def sales_for(repo) -> SalesService:
    return SalesService(repo, AuthService(repo))


def test_sale_persists_header_lines_and_decrements_stock(tmp_path: Path):
    repo = make_repo(tmp_path)
    store = seed_store(repo)
    owner = seed_operator(repo, "owner")
    a = seed_product(repo, store, stock=5)

    cart = Cart()
    cart.add(a)
    cart.add(a)
    receipt = sales_for(repo).submit_sale(owner, cart, None, "card")

    assert receipt.total == 200
    assert receipt.profit == 80
    assert receipt.units == 2
    assert receipt.lines == 1
    assert receipt.store_id == store
    assert repo.get_product(a.id).stock == 3

    rows, total = repo.list_sales()
    assert total == 1
    assert rows[0].payment_method == "card"
    assert rows[0].sold_by == owner.id
    assert rows[0].original_amount == 200

    lines = repo.sale_items_for_sale(receipt.sale_id)
    assert [(l.quantity, l.price_at_sale, l.cost_at_sale, l.profit) for l in lines] == [(2, 100.0, 60.0, 80.0)]


def test_stale_cart_cannot_oversell(tmp_path: Path):
    repo = make_repo(tmp_path)
    store = seed_store(repo)
    owner = seed_operator(repo, "owner")
    a = seed_product(repo, store, stock=5)

    cart = Cart()
    for _ in range(4):
        cart.add(a)
    # another till sold most of the stock meanwhile
    repo.update_product(a.id, {"stock": 2})

    with pytest.raises(InsufficientStockError):
        sales_for(repo).submit_sale(owner, cart)

    assert repo.get_product(a.id).stock == 2
    assert repo.list_sales() == ([], 0)


def test_failed_line_rolls_back_the_whole_sale(tmp_path: Path):
    repo = make_repo(tmp_path)
    store = seed_store(repo)
    owner = seed_operator(repo, "owner")
    a = seed_product(repo, store, name="A", stock=5)
    b = seed_product(repo, store, name="B", stock=3)

    cart = Cart()
    cart.add(a)
    cart.add(b)
    cart.add(b)
    repo.update_product(b.id, {"stock": 1})

    with pytest.raises(InsufficientStockError):
        sales_for(repo).submit_sale(owner, cart)

    assert repo.get_product(a.id).stock == 5
    assert repo.get_product(b.id).stock == 1
    conn = repo._conn()
    assert conn.execute("SELECT COUNT(*) FROM sale_items").fetchone()[0] == 0
    conn.close()


def test_empty_cart_and_unknown_payment_are_rejected(tmp_path: Path):
    repo = make_repo(tmp_path)
    store = seed_store(repo)
    owner = seed_operator(repo, "owner")
    sales = sales_for(repo)

    with pytest.raises(ValidationError):
        sales.submit_sale(owner, Cart())

    cart = Cart()
    cart.add(seed_product(repo, store))
    with pytest.raises(ValidationError):
        sales.submit_sale(owner, cart, None, "crypto")


def test_mixed_store_cart_is_rejected(tmp_path: Path):
    repo = make_repo(tmp_path)
    s1 = seed_store(repo, "One")
    s2 = seed_store(repo, "Two")
    owner = seed_operator(repo, "owner")

    cart = Cart()
    cart.add(seed_product(repo, s1, name="A"))
    cart.add(seed_product(repo, s2, name="B"))

    with pytest.raises(ValidationError):
        sales_for(repo).submit_sale(owner, cart)


def test_receptionist_sells_only_for_own_store(tmp_path: Path):
    repo = make_repo(tmp_path)
    s1 = seed_store(repo, "One")
    s2 = seed_store(repo, "Two")
    clerk = seed_operator(repo, "receptionist", store_id=s1)

    foreign = Cart()
    foreign.add(seed_product(repo, s2, name="Foreign"))
    with pytest.raises(AuthorizationError):
        sales_for(repo).submit_sale(clerk, foreign)

    own = Cart()
    own.add(seed_product(repo, s1, name="Local"))
    receipt = sales_for(repo).submit_sale(clerk, own)
    assert receipt.store_id == s1


def test_receptionist_without_store_cannot_sell(tmp_path: Path):
    repo = make_repo(tmp_path)
    store = seed_store(repo)
    clerk = seed_operator(repo, "receptionist")

    cart = Cart()
    cart.add(seed_product(repo, store))
    with pytest.raises(AuthorizationError):
        sales_for(repo).submit_sale(clerk, cart)


def test_customer_from_other_store_is_rejected(tmp_path: Path):
    repo = make_repo(tmp_path)
    s1 = seed_store(repo, "One")
    s2 = seed_store(repo, "Two")
    owner = seed_operator(repo, "owner")
    stranger = seed_customer(repo, s2, "Stranger")

    cart = Cart()
    cart.add(seed_product(repo, s1))
    with pytest.raises(ValidationError):
        sales_for(repo).submit_sale(owner, cart, stranger)


def test_negative_profit_is_saved_and_logged(tmp_path: Path, caplog):
    repo = make_repo(tmp_path)
    store = seed_store(repo)
    owner = seed_operator(repo, "owner")
    big = seed_customer(repo, store, "Big", discount_type="fixed", fixed=250)
    a = seed_product(repo, store)

    cart = Cart()
    cart.add(a)
    cart.add(a)
    with caplog.at_level(logging.WARNING, logger="storepos.sales"):
        receipt = sales_for(repo).submit_sale(owner, cart, big)

    assert receipt.total == 0
    assert receipt.profit == -120
    assert repo.list_sales()[0][0].profit == -120
    assert repo.list_sales()[0][0].customer_name == "Big"
    assert any("sale_negative_profit" in r.getMessage() for r in caplog.records)


class BrokenRepo(SqliteRepository):
    def create_sale_with_items(self, header, items):
        raise sqlite3.OperationalError("database is locked")


def test_storage_errors_surface_as_backend_error(tmp_path: Path):
    repo = BrokenRepo(tmp_path / "broken.db")
    repo.init_db()
    store = seed_store(repo)
    owner = seed_operator(repo, "owner")

    cart = Cart()
    cart.add(seed_product(repo, store))
    with pytest.raises(BackendError):
        sales_for(repo).submit_sale(owner, cart)


def test_sale_details_are_store_scoped(tmp_path: Path):
    repo = make_repo(tmp_path)
    s1 = seed_store(repo, "One")
    s2 = seed_store(repo, "Two")
    owner = seed_operator(repo, "owner")
    clerk = seed_operator(repo, "receptionist", store_id=s2)

    cart = Cart()
    cart.add(seed_product(repo, s1))
    receipt = sales_for(repo).submit_sale(owner, cart)

    header, lines = sales_for(repo).sale_details(owner, receipt.sale_id)
    assert header.id == receipt.sale_id
    assert lines[0].product_name == "Product A"

    assert header.created_at

    with pytest.raises(AuthorizationError):
        sales_for(repo).sale_details(clerk, receipt.sale_id)
    with pytest.raises(NotFoundError):
        sales_for(repo).sale_details(owner, "no-such-sale")


def test_sales_can_be_searched_by_id(tmp_path: Path):
    repo = make_repo(tmp_path)
    store = seed_store(repo)
    owner = seed_operator(repo, "owner")
    product = seed_product(repo, store, stock=10)
    sales = sales_for(repo)

    ids = []
    for _ in range(3):
        cart = Cart()
        cart.add(product)
        ids.append(sales.submit_sale(owner, cart).sale_id)

    rows, total = sales.list_sales(owner, query=ids[1][:8].upper())
    assert total == 1
    assert [s.id for s in rows] == [ids[1]]
