"""Checkout and order history."""

import logging
from decimal import Decimal
from typing import Optional

from .cart import CartStore
from .errors import EmptyCartError, NotFoundError
from .models import CheckoutForm, Order, OrderItem, OrderStatus, ShippingAddress
from .platform_client import PlatformClient
from .session import SessionStore

logger = logging.getLogger(__name__)


def total_spent(orders: list[Order]) -> Decimal:
    return sum((order.total_amount for order in orders), Decimal("0"))


class OrderService:
    """Places orders from the cart and reads the customer's orders."""

    def __init__(self, platform: PlatformClient, session: SessionStore, cart: CartStore) -> None:
        self.platform = platform
        self.session = session
        self.cart = cart

    def place_order(self, form: CheckoutForm) -> Order:
        """
        Submit the cart as an order.

        The order row is written first, then its items, then the cart is
        cleared. Totals and unit prices come from the cart snapshot. If any
        request fails the error propagates and the cart is left as it was.

        Args:
            form: Shipping details and notes

        Returns:
            The created order, with the server generated order number

        Raises:
            NotAuthenticatedError: If nobody is signed in
            EmptyCartError: If the cart has no items
            PlatformError: If the platform rejects a write
        """
        user = self.session.require_user()
        items = self.cart.items
        if not items:
            raise EmptyCartError()

        shipping = ShippingAddress(
            full_name=form.full_name,
            email=form.email,
            phone=form.phone,
            address_line_1=form.address_line_1,
            address_line_2=form.address_line_2,
            city=form.city,
            state=form.state,
            postal_code=form.postal_code,
            country=form.country,
        )
        total = self.cart.get_total_price()
        logger.info(f"=== PLACE ORDER: user={user.id}, items={len(items)}, total={total} ===")

        order_row = (
            self.platform.table("orders")
            .insert({
                "user_id": user.id,
                "total_amount": str(total),
                "status": OrderStatus.PENDING.value,
                "shipping_address": shipping.model_dump(mode="json"),
                "notes": form.notes,
            })
            .select()
            .single()
            .execute()
        )
        order = Order.model_validate(order_row)

        item_rows = (
            self.platform.table("order_items")
            .insert([
                {
                    "order_id": order.id,
                    "product_id": item.product.id,
                    "quantity": item.quantity,
                    "price": str(item.product.price),
                }
                for item in items
            ])
            .select()
            .execute()
        )
        order = order.model_copy(
            update={"order_items": [OrderItem.model_validate(row) for row in item_rows]}
        )

        self.cart.clear()
        logger.info(f"Order {order.order_number} placed")
        return order

    def list_orders(self, limit: Optional[int] = None) -> list[Order]:
        """Own orders, newest first."""
        user = self.session.require_user()
        query = (
            self.platform.table("orders")
            .select("*")
            .eq("user_id", user.id)
            .order("created_at", ascending=False)
        )
        if limit is not None:
            query = query.limit(limit)
        return [Order.model_validate(row) for row in query.execute()]

    def recent_orders(self, limit: int = 3) -> list[Order]:
        return self.list_orders(limit=limit)

    def get_order(self, order_id: str) -> Order:
        """
        Fetch one order with its items and their products.

        Raises:
            NotFoundError: If the order does not exist or is not visible
        """
        self.session.require_user()
        rows = (
            self.platform.table("orders")
            .select("*, order_items(*, products(*))")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
        if not rows:
            raise NotFoundError(f"Order {order_id} not found")
        return Order.model_validate(rows[0])
