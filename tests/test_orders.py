import re
from decimal import Decimal

import pytest

from storefront_server.errors import EmptyCartError, NotAuthenticatedError, NotFoundError, PlatformError
from storefront_server.models import CheckoutForm, OrderStatus, Product
from storefront_server.orders import total_spent


def make_checkout(**fields):
    values = {
        "full_name": "Ann",
        "email": "ann@example.com",
        "address_line_1": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "postal_code": "62701",
    }
    values.update(fields)
    return CheckoutForm(**values)


@pytest.fixture
def filled_cart(backend, storefront):
    shoe = Product.model_validate(backend.add_product("Shoe", "10.00"))
    hat = Product.model_validate(backend.add_product("Hat", "5.00"))
    storefront.cart.add_item(shoe, 1)
    storefront.cart.add_item(hat, 3)
    return shoe, hat


def test_checkout_requires_sign_in(storefront, filled_cart):
    with pytest.raises(NotAuthenticatedError):
        storefront.orders.place_order(make_checkout())
    assert storefront.cart.get_total_items() == 4


def test_checkout_with_empty_cart(storefront, customer):
    with pytest.raises(EmptyCartError):
        storefront.orders.place_order(make_checkout())


def test_place_order(backend, storefront, customer, filled_cart):
    shoe, hat = filled_cart

    order = storefront.orders.place_order(make_checkout(notes="Leave at door"))

    assert re.match(r"^ORD-\d{8}-\d{6}$", order.order_number)
    assert order.user_id == customer
    assert order.status == OrderStatus.PENDING
    assert order.total_amount == Decimal("25.00")
    assert order.shipping_address.city == "Springfield"
    assert order.notes == "Leave at door"
    assert {(i.product_id, i.quantity, i.price) for i in order.order_items} == {
        (shoe.id, 1, Decimal("10.00")),
        (hat.id, 3, Decimal("5.00")),
    }
    assert storefront.cart.is_empty()

    stored = backend.tables["orders"][0]
    assert stored["shipping_address"]["email"] == "ann@example.com"
    assert len(backend.tables["order_items"]) == 2


def test_cart_snapshot_price_is_charged(backend, storefront, customer, filled_cart):
    shoe, _ = filled_cart
    backend.tables["products"][0]["price"] = "99.00"

    order = storefront.orders.place_order(make_checkout())

    assert order.total_amount == Decimal("25.00")


def test_failed_order_insert_keeps_cart(backend, storefront, customer, filled_cart):
    backend.fail("POST", "orders")

    with pytest.raises(PlatformError):
        storefront.orders.place_order(make_checkout())

    assert storefront.cart.get_total_items() == 4
    assert backend.tables["orders"] == []


def test_failed_item_insert_keeps_cart(backend, storefront, customer, filled_cart):
    backend.fail("POST", "order_items")

    with pytest.raises(PlatformError):
        storefront.orders.place_order(make_checkout())

    assert storefront.cart.get_total_items() == 4


def test_list_orders_newest_first(storefront, customer, filled_cart):
    shoe, hat = filled_cart
    first = storefront.orders.place_order(make_checkout())
    storefront.cart.add_item(shoe, 2)
    second = storefront.orders.place_order(make_checkout())

    orders = storefront.orders.list_orders()

    assert [o.id for o in orders] == [second.id, first.id]
    assert [o.id for o in storefront.orders.recent_orders(limit=1)] == [second.id]
    assert total_spent(orders) == Decimal("45.00")


def test_list_orders_only_own(backend, storefront, customer, filled_cart):
    backend.add_row("orders", user_id="someone-else", order_number="ORD-20240101-999999",
                    total_amount="1.00", status="pending", shipping_address={
                        "full_name": "Bob", "email": "bob@example.com", "address_line_1": "x",
                        "city": "x", "state": "x", "postal_code": "x"})

    storefront.orders.place_order(make_checkout())

    assert [o.user_id for o in storefront.orders.list_orders()] == [customer]


def test_get_order_with_items_and_products(storefront, customer, filled_cart):
    placed = storefront.orders.place_order(make_checkout())

    order = storefront.orders.get_order(placed.id)

    assert order.order_number == placed.order_number
    assert sorted(item.products.name for item in order.order_items) == ["Hat", "Shoe"]
    assert sum((item.subtotal for item in order.order_items), Decimal("0")) == Decimal("25.00")


def test_get_missing_order(storefront, customer):
    with pytest.raises(NotFoundError):
        storefront.orders.get_order("missing")
