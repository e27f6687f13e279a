import pytest

from storepos.domain.cart import Cart, compute_discount
from storepos.domain.errors import InsufficientStockError, NotFoundError
from storepos.domain.models import Customer, Product


def product_a(stock: int = 5) -> Product:
    return Product(id="p-a", store_id="s1", name="A", buying_price=60.0, selling_price=100.0, stock=stock)


def cart_with_two_a() -> Cart:
    cart = Cart()
    cart.add(product_a())
    cart.add(product_a())
    return cart


def test_two_units_without_customer():
    totals = cart_with_two_a().totals(None)

    assert totals.subtotal == 200
    assert totals.discount == 0
    assert totals.total == 200
    assert totals.profit == 80
    assert totals.units == 2


def test_percentage_customer_discount_comes_out_of_profit():
    vip = Customer(id="c1", store_id="s1", name="VIP", discount_type="percentage", discount_percentage=10)
    totals = cart_with_two_a().totals(vip)

    assert totals.discount == 20
    assert totals.total == 180
    assert totals.profit == 60


def test_fixed_discount_is_capped_at_subtotal_and_profit_may_go_negative():
    big = Customer(id="c2", store_id="s1", name="Big", discount_type="fixed", discount_fixed_amount=250)
    totals = cart_with_two_a().totals(big)

    assert totals.discount == 200
    assert totals.total == 0
    assert totals.profit == -120


def test_add_beyond_stock_is_rejected_without_changing_cart():
    cart = Cart()
    for _ in range(5):
        cart.add(product_a())

    with pytest.raises(InsufficientStockError, match="Only 5 units available"):
        cart.add(product_a())

    assert cart.quantity_of("p-a") == 5
    assert len(cart.items) == 1


def test_out_of_stock_product_cannot_be_added():
    cart = Cart()
    with pytest.raises(InsufficientStockError):
        cart.add(product_a(stock=0))
    assert cart.is_empty


def test_decrement_to_zero_removes_line():
    cart = Cart()
    cart.add(product_a())

    assert cart.change_quantity("p-a", -1) is None
    assert cart.is_empty


def test_increment_past_stock_is_rejected():
    cart = Cart()
    cart.add(product_a(stock=2))
    cart.change_quantity("p-a", 1)

    with pytest.raises(InsufficientStockError):
        cart.change_quantity("p-a", 1)
    assert cart.quantity_of("p-a") == 2


def test_change_quantity_of_unknown_line():
    with pytest.raises(NotFoundError):
        Cart().change_quantity("nope", 1)


def test_remove_and_clear():
    cart = cart_with_two_a()
    other = Product(id="p-b", store_id="s1", name="B", buying_price=1.0, selling_price=2.0, stock=3)
    cart.add(other)

    cart.remove("p-a")
    assert [it.product.id for it in cart.items] == ["p-b"]

    cart.clear()
    assert cart.is_empty
    assert cart.units == 0


def test_compute_discount_without_customer_is_zero():
    assert compute_discount(500.0, None) == 0.0


def test_store_ids_lists_every_store_in_cart():
    cart = Cart()
    cart.add(product_a())
    cart.add(Product(id="p-x", store_id="s2", name="X", buying_price=1.0, selling_price=2.0, stock=1))
    assert cart.store_ids() == {"s1", "s2"}


def test_unit_profit_and_margin():
    p = product_a()
    assert p.unit_profit == 40.0
    assert p.margin_pct == pytest.approx(40.0)

    free = Product(id="p-f", store_id="s1", name="Sample", buying_price=3.0, selling_price=0.0, stock=1)
    assert free.unit_profit == -3.0
    assert free.margin_pct == 0.0
