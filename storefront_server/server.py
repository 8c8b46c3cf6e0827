"""MCP Server for the storefront."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .app import Storefront
from .catalog import check_stock, product_images
from .config import Settings
from .errors import AuthError, describe_auth_error
from .models import AddressForm, CheckoutForm, Order, Product

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-mcp-server")

# Initialize server
app = Server("storefront-mcp-server")

# Global state
storefront: Optional[Storefront] = None

NOT_AUTHENTICATED = (
    "Error: Not authenticated. Use storefront_login or configure "
    "STOREFRONT_EMAIL and STOREFRONT_PASSWORD in the MCP settings."
)

# Tools that need a signed-in customer; auto-login is attempted first
AUTHENTICATED_TOOLS = {
    "storefront_whoami",
    "storefront_update_profile",
    "storefront_checkout",
    "storefront_get_orders",
    "storefront_get_order_details",
    "storefront_list_addresses",
    "storefront_save_address",
    "storefront_delete_address",
    "storefront_admin_stats",
}

_ADDRESS_PROPERTIES = {
    "full_name": {"type": "string", "description": "Recipient name"},
    "phone": {"type": "string", "description": "Phone number (optional)"},
    "address_line_1": {"type": "string", "description": "Street address"},
    "address_line_2": {"type": "string", "description": "Apartment, suite, etc. (optional)"},
    "city": {"type": "string", "description": "City"},
    "state": {"type": "string", "description": "State or region"},
    "postal_code": {"type": "string", "description": "Postal code"},
    "country": {"type": "string", "description": "Country code (default: US)", "default": "US"},
}
_ADDRESS_REQUIRED = ["full_name", "address_line_1", "city", "state", "postal_code"]


def _format_product(index: int, product: Product) -> list[str]:
    lines = [f"\n{index}. {product.name}", f"   ID: {product.id}", f"   Price: ${product.price}"]
    if product.compare_at_price and product.compare_at_price > product.price:
        lines.append(f"   Compare at: ${product.compare_at_price} (ON SALE)")
    if product.categories:
        lines.append(f"   Category: {product.categories.name}")
    lines.append(f"   In stock: {product.inventory_count}")
    return lines


def _format_order(order: Order) -> list[str]:
    lines = [f"Order #{order.order_number}", f"Status: {order.status.value}"]
    if order.created_at:
        lines.append(f"Date: {order.created_at.strftime('%Y-%m-%d %H:%M')}")
    lines.append(f"Total: ${order.total_amount}")
    return lines


def handle_tool(storefront: Storefront, name: str, arguments: dict[str, Any]) -> str:
    """
    Run a tool against a storefront and format the result as text.

    Service errors propagate to the caller.
    """
    if name in AUTHENTICATED_TOOLS and not storefront.ensure_authenticated():
        return NOT_AUTHENTICATED

    if name == "storefront_login":
        # Use provided credentials or fall back to configured ones
        email = arguments.get("email")
        password = arguments.get("password")
        configured = storefront.settings.credentials if storefront.settings else None
        if not email or not password:
            if not configured:
                return "Error: No credentials provided and STOREFRONT_EMAIL/STOREFRONT_PASSWORD not configured."
            email = email or configured.email
            password = password or configured.password

        try:
            storefront.session.sign_in(email, password)
        except AuthError as e:
            return f"Login failed: {describe_auth_error(e)}"
        return f"Successfully logged in as {email}"

    elif name == "storefront_logout":
        storefront.session.sign_out()
        return "Successfully logged out"

    elif name == "storefront_register":
        try:
            storefront.session.sign_up(arguments["email"], arguments["password"], arguments["full_name"])
        except AuthError as e:
            return f"Registration failed: {describe_auth_error(e, 'Failed to create account')}"
        if storefront.session.is_signed_in:
            return f"Account created and logged in as {arguments['email']}"
        return "Account created. Please check your email to confirm your address before signing in."

    elif name == "storefront_whoami":
        user = storefront.session.user
        profile = storefront.session.profile
        lines = [f"Email: {user.email}", f"User ID: {user.id}"]
        if profile:
            lines.append(f"Name: {profile.full_name or '-'}")
            lines.append(f"Role: {profile.role.value}")
        return "\n".join(lines)

    elif name == "storefront_update_profile":
        fields = {k: arguments[k] for k in ("full_name", "avatar_url") if k in arguments}
        profile = storefront.session.update_profile(fields)
        return f"Profile updated successfully! Name: {profile.full_name or '-'}"

    elif name == "storefront_list_categories":
        categories = storefront.catalog.list_categories()
        if not categories:
            return "No categories found"
        lines = [f"Found {len(categories)} categor{'y' if len(categories) == 1 else 'ies'}:\n"]
        for category in categories:
            lines.append(f"- {category.name} (slug: {category.slug})")
            if category.description:
                lines.append(f"  {category.description}")
        return "\n".join(lines)

    elif name == "storefront_featured_products":
        products = storefront.catalog.featured_products(limit=arguments.get("limit", 8))
        if not products:
            return "No featured products"
        lines = [f"Featured products ({len(products)}):"]
        for i, product in enumerate(products, 1):
            lines.extend(_format_product(i, product))
        return "\n".join(lines)

    elif name == "storefront_search_products":
        query = arguments.get("query")
        category = arguments.get("category")
        products = storefront.catalog.list_products(category_slug=category, search=query)
        if not products:
            return f"No products found for: {query or category or 'all products'}"
        lines = [f"Found {len(products)} product(s):"]
        for i, product in enumerate(products, 1):
            lines.extend(_format_product(i, product))
        return "\n".join(lines)

    elif name == "storefront_get_product":
        product = storefront.catalog.get_product(arguments["product_id"])
        lines = _format_product(1, product)[1:]
        lines.insert(0, product.name)
        if product.sku:
            lines.append(f"   SKU: {product.sku}")
        if product.description:
            lines.append(f"\n{product.description}")
        lines.append("\nImages:")
        lines.extend(f"- {image}" for image in product_images(product))
        return "\n".join(lines)

    elif name == "storefront_add_to_cart":
        quantity = arguments.get("quantity", 1)
        product = storefront.catalog.get_product(arguments["product_id"])
        line = storefront.cart.get_item(product.id)
        check_stock(product, quantity, line.quantity if line else 0)
        storefront.cart.add_item(product, quantity)
        return f"Successfully added {product.name} (quantity: {quantity}) to cart"

    elif name == "storefront_update_cart_quantity":
        product_id = arguments["product_id"]
        quantity = arguments["quantity"]
        if storefront.cart.get_item(product_id) is None:
            return f"Product {product_id} is not in the cart"
        storefront.cart.update_quantity(product_id, quantity)
        if quantity <= 0:
            return f"Removed product {product_id} from cart"
        return f"Successfully updated product {product_id} to quantity {quantity}"

    elif name == "storefront_remove_from_cart":
        product_id = arguments["product_id"]
        if storefront.cart.get_item(product_id) is None:
            return f"Product {product_id} is not in the cart"
        storefront.cart.remove_item(product_id)
        return f"Successfully removed product {product_id} from cart"

    elif name == "storefront_get_cart":
        cart = storefront.cart
        if cart.is_empty():
            return "Your cart is empty"
        lines = [f"Shopping Cart ({cart.get_total_items()} items):\n"]
        for i, item in enumerate(cart.items, 1):
            lines.append(f"\n{i}. {item.product.name}")
            lines.append(f"   Product ID: {item.product.id}")
            lines.append(f"   Price: ${item.product.price}")
            lines.append(f"   Quantity: {item.quantity}")
            lines.append(f"   Subtotal: ${item.subtotal}")
        lines.append(f"\n{'=' * 50}")
        lines.append(f"Total: ${cart.get_total_price()}")
        return "\n".join(lines)

    elif name == "storefront_clear_cart":
        storefront.cart.clear()
        return "Cart cleared"

    elif name == "storefront_checkout":
        order = storefront.orders.place_order(CheckoutForm.model_validate(arguments))
        return f"Order placed successfully!\nOrder number: {order.order_number}\nTotal: ${order.total_amount}"

    elif name == "storefront_get_orders":
        orders = storefront.orders.list_orders(limit=arguments.get("limit"))
        if not orders:
            return "No orders found"
        lines = [f"Found {len(orders)} order(s):"]
        for i, order in enumerate(orders, 1):
            first, *rest = _format_order(order)
            lines.append(f"\n{i}. {first}")
            lines.extend(f"   {line}" for line in rest)
        return "\n".join(lines)

    elif name == "storefront_get_order_details":
        order = storefront.orders.get_order(arguments["order_id"])
        lines = ["Order Details:\n"]
        lines.extend(_format_order(order))
        shipping = order.shipping_address
        lines.append(
            f"Ship to: {shipping.full_name}, {shipping.address_line_1}, "
            f"{shipping.city}, {shipping.state} {shipping.postal_code}, {shipping.country}"
        )
        if order.notes:
            lines.append(f"Notes: {order.notes}")
        if order.order_items:
            lines.append(f"\nItems ({len(order.order_items)}):")
            for i, item in enumerate(order.order_items, 1):
                product_name = item.products.name if item.products else item.product_id
                lines.append(f"\n{i}. {product_name}")
                lines.append(f"   Quantity: {item.quantity}")
                lines.append(f"   Price: ${item.price}")
                lines.append(f"   Subtotal: ${item.subtotal}")
        else:
            lines.append("\nNo items found for this order")
        return "\n".join(lines)

    elif name == "storefront_list_addresses":
        addresses = storefront.addresses.list_addresses()
        if not addresses:
            return "No saved addresses"
        lines = [f"Saved addresses ({len(addresses)}):"]
        for address in addresses:
            default = " [default]" if address.is_default else ""
            lines.append(f"\n- {address.full_name}{default} (ID: {address.id})")
            lines.append(f"  {address.address_line_1}, {address.city}, {address.state} {address.postal_code}")
        return "\n".join(lines)

    elif name == "storefront_save_address":
        arguments = dict(arguments)
        address_id = arguments.pop("address_id", None)
        address = storefront.addresses.save_address(AddressForm.model_validate(arguments), address_id)
        return f"Address saved (ID: {address.id})"

    elif name == "storefront_delete_address":
        storefront.addresses.delete_address(arguments["address_id"])
        return f"Address {arguments['address_id']} deleted"

    elif name == "storefront_admin_stats":
        stats = storefront.admin.dashboard_stats()
        return (
            f"Products: {stats.total_products} ({stats.active_products} active)\n"
            f"Categories: {stats.total_categories}\n"
            f"Orders: {stats.total_orders}"
        )

    return f"Unknown tool: {name}"


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    resources = [
        Resource(
            uri=AnyUrl("storefront://cart"),
            name="Shopping Cart",
            mimeType="application/json",
            description="Current shopping cart contents",
        )
    ]

    # Orders are only readable when signed in
    if storefront.session.is_signed_in:
        resources.append(
            Resource(
                uri=AnyUrl("storefront://orders"),
                name="Orders",
                mimeType="application/json",
                description="User's orders",
            )
        )

    return resources


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "storefront://cart":
        items = [item.model_dump(mode="json") for item in storefront.cart.items]
        return json.dumps(
            {
                "items": items,
                "total_items": storefront.cart.get_total_items(),
                "total_price": str(storefront.cart.get_total_price()),
            },
            indent=2,
        )

    elif uri_str == "storefront://orders":
        if not storefront.session.is_signed_in:
            return "Error: Not authenticated. Please login first."

        orders = storefront.orders.list_orders()
        return json.dumps([order.model_dump(mode="json") for order in orders], indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="storefront_login",
            description="Sign in to the store. Uses credentials from environment (STOREFRONT_EMAIL, STOREFRONT_PASSWORD) if not provided.",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {
                        "type": "string",
                        "description": "User email address (optional if STOREFRONT_EMAIL is configured)",
                    },
                    "password": {
                        "type": "string",
                        "description": "User password (optional if STOREFRONT_PASSWORD is configured)",
                    },
                },
            },
        ),
        Tool(
            name="storefront_logout",
            description="Sign out and clear the session",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_register",
            description="Create a customer account",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {"type": "string", "description": "Email address"},
                    "password": {"type": "string", "description": "Password"},
                    "full_name": {"type": "string", "description": "Display name"},
                },
                "required": ["email", "password", "full_name"],
            },
        ),
        Tool(
            name="storefront_whoami",
            description="Show the signed-in user and their role",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_update_profile",
            description="Update the signed-in user's display name or avatar",
            inputSchema={
                "type": "object",
                "properties": {
                    "full_name": {"type": "string", "description": "Display name"},
                    "avatar_url": {"type": "string", "description": "Avatar image URL"},
                },
            },
        ),
        Tool(
            name="storefront_list_categories",
            description="List product categories",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_featured_products",
            description="List featured products from the home page",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": "Number of products (default: 8)",
                        "default": 8,
                    },
                },
            },
        ),
        Tool(
            name="storefront_search_products",
            description="Search active products by name or description, optionally within a category",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search term",
                    },
                    "category": {
                        "type": "string",
                        "description": "Category slug (optional)",
                    },
                },
            },
        ),
        Tool(
            name="storefront_get_product",
            description="Get details and images for a product",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID"},
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="storefront_add_to_cart",
            description="Add a product to the shopping cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {
                        "type": "string",
                        "description": "Product ID to add to cart",
                    },
                    "quantity": {
                        "type": "integer",
                        "description": "Quantity to add (default: 1)",
                        "default": 1,
                    },
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="storefront_update_cart_quantity",
            description="Set the quantity of a product in the shopping cart. Zero removes it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {
                        "type": "string",
                        "description": "Product ID to update",
                    },
                    "quantity": {
                        "type": "integer",
                        "description": "New quantity to set",
                    },
                },
                "required": ["product_id", "quantity"],
            },
        ),
        Tool(
            name="storefront_remove_from_cart",
            description="Remove a product from the shopping cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {
                        "type": "string",
                        "description": "Product ID to remove from cart",
                    },
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="storefront_get_cart",
            description="Get current shopping cart contents with all items and total",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_clear_cart",
            description="Remove everything from the shopping cart",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_checkout",
            description="Place an order for the cart contents",
            inputSchema={
                "type": "object",
                "properties": {
                    **_ADDRESS_PROPERTIES,
                    "email": {"type": "string", "description": "Contact email"},
                    "notes": {"type": "string", "description": "Order notes (optional)"},
                },
                "required": _ADDRESS_REQUIRED + ["email"],
            },
        ),
        Tool(
            name="storefront_get_orders",
            description="Get the signed-in user's orders, newest first",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {"type": "integer", "description": "Maximum number of orders (optional)"},
                },
            },
        ),
        Tool(
            name="storefront_get_order_details",
            description="Get detailed information for a specific order, including all items",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {
                        "type": "string",
                        "description": "Order ID to fetch details for",
                    },
                },
                "required": ["order_id"],
            },
        ),
        Tool(
            name="storefront_list_addresses",
            description="List saved addresses, default first",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_save_address",
            description="Create an address, or update one when address_id is given",
            inputSchema={
                "type": "object",
                "properties": {
                    "address_id": {"type": "string", "description": "Address to update (optional)"},
                    **_ADDRESS_PROPERTIES,
                    "is_default": {
                        "type": "boolean",
                        "description": "Make this the default address",
                        "default": False,
                    },
                },
                "required": _ADDRESS_REQUIRED,
            },
        ),
        Tool(
            name="storefront_delete_address",
            description="Delete a saved address",
            inputSchema={
                "type": "object",
                "properties": {
                    "address_id": {"type": "string", "description": "Address ID"},
                },
                "required": ["address_id"],
            },
        ),
        Tool(
            name="storefront_admin_stats",
            description="Store dashboard counts (admin only)",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    try:
        text = handle_tool(storefront, name, arguments or {})
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        text = f"Error: {str(e)}"
    return [TextContent(type="text", text=text)]


async def main() -> None:
    """Main entry point for the MCP server."""
    global storefront

    settings = Settings.from_env()
    storefront = Storefront.from_settings(settings)

    if settings.credentials:
        logger.info(f"Credentials loaded from environment for: {settings.credentials.email}")
    else:
        logger.warning("No credentials found in environment variables (STOREFRONT_EMAIL, STOREFRONT_PASSWORD)")
        logger.warning("Order and address operations will require manual login via storefront_login tool")

    logger.info("Starting Storefront MCP Server...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        storefront.close()


if __name__ == "__main__":
    asyncio.run(main())
