"""HTTP server for the storefront."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from . import __version__
from .app import Storefront
from .cart import CartStore
from .catalog import check_stock, primary_image, product_images
from .config import Settings
from .errors import (
    AuthError,
    DuplicateSlugError,
    EmptyCartError,
    NotAuthenticatedError,
    NotFoundError,
    OutOfStockError,
    PermissionDeniedError,
    PlatformError,
    StorefrontError,
    describe_auth_error,
    describe_save_error,
)
from .models import AddressForm, CategoryForm, CheckoutForm, Product, ProductForm, ProfileUpdate
from .orders import total_spent

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-http-server")

# Global state; preset it to serve an existing storefront
storefront: Optional[Storefront] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global storefront

    # Startup
    logger.info("Starting Storefront HTTP Server...")
    if storefront is None:
        storefront = Storefront.from_settings(Settings.from_env())

    yield

    # Shutdown
    logger.info("Shutting down Storefront HTTP Server...")
    storefront.close()
    storefront = None


app = FastAPI(
    title="Storefront Server",
    description="HTTP API for browsing the catalog, managing the cart and placing orders",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    """Map storefront errors to HTTP status codes."""
    if isinstance(exc, AuthError) and (exc.status_code or 0) < 500:
        status_code, detail = 401, describe_auth_error(exc)
    elif isinstance(exc, NotAuthenticatedError):
        status_code, detail = 401, exc.message
    elif isinstance(exc, PermissionDeniedError):
        status_code, detail = 403, exc.message
    elif isinstance(exc, NotFoundError):
        status_code, detail = 404, exc.message
    elif isinstance(exc, (EmptyCartError, OutOfStockError, DuplicateSlugError)):
        status_code, detail = 400, describe_save_error(exc, exc.message)
    elif isinstance(exc, PlatformError):
        logger.error(f"Platform error on {request.url.path}: {exc}")
        status_code, detail = 502, exc.message
    else:
        status_code, detail = 500, exc.message
    return JSONResponse(status_code=status_code, content={"detail": detail})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """A platform row that does not fit the models is an upstream fault."""
    logger.error(f"Unexpected platform data on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": "Unexpected response from platform"})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Request/Response Models
class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    full_name: str


class LoginResponse(BaseModel):
    success: bool
    message: str


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = 1


class UpdateCartRequest(BaseModel):
    product_id: str
    quantity: int


class RemoveFromCartRequest(BaseModel):
    product_id: str


def _cart_payload(cart: CartStore) -> dict[str, Any]:
    return {
        "items": [
            {**item.model_dump(mode="json"), "subtotal": str(item.subtotal)}
            for item in cart.items
        ],
        "total_items": cart.get_total_items(),
        "total_price": str(cart.get_total_price()),
    }


def _product_payload(product: Product) -> dict[str, Any]:
    return {
        **product.model_dump(mode="json"),
        "primary_image": primary_image(product),
        "gallery": product_images(product),
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Storefront Server",
        "version": __version__,
        "description": "HTTP API for browsing the catalog, managing the cart and placing orders",
        "mcp_compatible": True,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth": {
                "login": "POST /auth/login",
                "register": "POST /auth/register",
                "logout": "POST /auth/logout",
                "status": "GET /auth/status",
            },
            "profile": {"get": "GET /profile", "update": "PATCH /profile"},
            "catalog": {
                "categories": "GET /categories",
                "products": "GET /products",
                "featured": "GET /products/featured",
                "product": "GET /products/{product_id}",
            },
            "cart": {
                "get": "GET /cart",
                "add": "POST /cart/add",
                "update": "POST /cart/update",
                "remove": "POST /cart/remove",
                "clear": "POST /cart/clear",
            },
            "checkout": "POST /checkout",
            "orders": {"list": "GET /orders", "get": "GET /orders/{order_id}"},
            "addresses": {
                "list": "GET /addresses",
                "create": "POST /addresses",
                "update": "PUT /addresses/{address_id}",
                "delete": "DELETE /addresses/{address_id}",
            },
            "admin": {
                "stats": "GET /admin/stats",
                "profile_stats": "GET /admin/profile-stats",
                "products": "GET|POST /admin/products, PUT|DELETE /admin/products/{product_id}",
                "categories": "GET|POST /admin/categories, PUT|DELETE /admin/categories/{category_id}",
            },
        },
        "authenticated": storefront.session.is_signed_in if storefront else False,
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "authenticated": storefront.session.is_signed_in if storefront else False,
    }


# Authentication endpoints
@app.post("/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """Sign in with email and password."""
    try:
        storefront.session.sign_in(request.email, request.password)
    except AuthError as e:
        return LoginResponse(success=False, message=describe_auth_error(e))
    return LoginResponse(success=True, message=f"Successfully logged in as {request.email}")


@app.post("/auth/register", response_model=LoginResponse)
async def register(request: RegisterRequest):
    """Create a customer account."""
    try:
        storefront.session.sign_up(request.email, request.password, request.full_name)
    except AuthError as e:
        return LoginResponse(success=False, message=describe_auth_error(e, "Failed to create account"))

    if storefront.session.is_signed_in:
        return LoginResponse(success=True, message=f"Account created for {request.email}")
    return LoginResponse(
        success=True,
        message="Account created. Please check your email to confirm your address before signing in.",
    )


@app.post("/auth/logout")
async def logout():
    """Sign out and clear the session."""
    storefront.session.sign_out()
    return {"success": True, "message": "Successfully logged out"}


@app.get("/auth/status")
async def auth_status():
    """Get authentication status."""
    session = storefront.session
    profile = session.profile
    return {
        "authenticated": session.is_signed_in,
        "email": session.user.email if session.user else None,
        "role": profile.role.value if profile else None,
    }


# Profile endpoints
@app.get("/profile")
async def get_profile():
    """Current profile with a short order summary."""
    storefront.session.require_user()
    profile = storefront.session.profile
    recent = storefront.orders.recent_orders()
    return {
        "profile": profile.model_dump(mode="json") if profile else None,
        "recent_orders": [order.model_dump(mode="json") for order in recent],
        "recent_total": str(total_spent(recent)),
    }


@app.patch("/profile")
async def update_profile(request: ProfileUpdate):
    """Update display name and avatar."""
    profile = storefront.session.update_profile(request)
    return {"success": True, "message": "Profile updated successfully!", "profile": profile.model_dump(mode="json")}


# Catalog endpoints
@app.get("/categories")
async def list_categories(limit: Optional[int] = None):
    categories = storefront.catalog.list_categories(limit=limit)
    return {"count": len(categories), "categories": [c.model_dump(mode="json") for c in categories]}


@app.get("/products")
async def list_products(category: Optional[str] = None, search: Optional[str] = None):
    """List active products, optionally by category slug or search term."""
    products = storefront.catalog.list_products(category_slug=category, search=search)
    return {"count": len(products), "products": [_product_payload(p) for p in products]}


@app.get("/products/featured")
async def featured_products(limit: int = 8):
    products = storefront.catalog.featured_products(limit=limit)
    return {"count": len(products), "products": [_product_payload(p) for p in products]}


@app.get("/products/{product_id}")
async def get_product(product_id: str):
    return _product_payload(storefront.catalog.get_product(product_id))


# Cart endpoints
@app.get("/cart")
async def get_cart():
    """Get current shopping cart."""
    return _cart_payload(storefront.cart)


@app.post("/cart/add")
async def add_to_cart(request: AddToCartRequest):
    """Add a product to the cart."""
    if request.quantity < 1:
        raise HTTPException(status_code=400, detail="Quantity must be at least 1")
    product = storefront.catalog.get_product(request.product_id)
    line = storefront.cart.get_item(product.id)
    check_stock(product, request.quantity, line.quantity if line else 0)
    storefront.cart.add_item(product, request.quantity)
    return {
        "success": True,
        "message": f"Added {product.name} (quantity: {request.quantity}) to cart",
        "cart": _cart_payload(storefront.cart),
    }


@app.post("/cart/update")
async def update_cart(request: UpdateCartRequest):
    """Set the quantity of a cart line. Zero removes it."""
    storefront.cart.update_quantity(request.product_id, request.quantity)
    return {"success": True, "cart": _cart_payload(storefront.cart)}


@app.post("/cart/remove")
async def remove_from_cart(request: RemoveFromCartRequest):
    """Remove a product from the cart."""
    storefront.cart.remove_item(request.product_id)
    return {"success": True, "cart": _cart_payload(storefront.cart)}


@app.post("/cart/clear")
async def clear_cart():
    storefront.cart.clear()
    return {"success": True, "cart": _cart_payload(storefront.cart)}


# Checkout and order endpoints
@app.post("/checkout")
async def checkout(request: CheckoutForm):
    """Place an order for the cart contents."""
    order = storefront.orders.place_order(request)
    return {
        "success": True,
        "order_number": order.order_number,
        "order": order.model_dump(mode="json"),
    }


@app.get("/orders")
async def list_orders(limit: Optional[int] = None):
    """Get user's orders."""
    orders = storefront.orders.list_orders(limit=limit)
    return {"count": len(orders), "orders": [order.model_dump(mode="json") for order in orders]}


@app.get("/orders/{order_id}")
async def get_order(order_id: str):
    return storefront.orders.get_order(order_id).model_dump(mode="json")


# Address endpoints
@app.get("/addresses")
async def list_addresses():
    addresses = storefront.addresses.list_addresses()
    return {"count": len(addresses), "addresses": [a.model_dump(mode="json") for a in addresses]}


@app.post("/addresses")
async def create_address(request: AddressForm):
    return storefront.addresses.save_address(request).model_dump(mode="json")


@app.put("/addresses/{address_id}")
async def update_address(address_id: str, request: AddressForm):
    return storefront.addresses.save_address(request, address_id).model_dump(mode="json")


@app.delete("/addresses/{address_id}")
async def delete_address(address_id: str):
    storefront.addresses.delete_address(address_id)
    return {"success": True}


# Admin endpoints
@app.get("/admin/stats")
async def admin_stats():
    return storefront.admin.dashboard_stats().model_dump(mode="json")


@app.get("/admin/profile-stats")
async def admin_profile_stats():
    return storefront.admin.profile_stats().model_dump(mode="json")


@app.get("/admin/products")
async def admin_list_products():
    products = storefront.admin.list_products()
    return {"count": len(products), "products": [p.model_dump(mode="json") for p in products]}


@app.post("/admin/products")
async def admin_create_product(request: ProductForm):
    return storefront.admin.save_product(request).model_dump(mode="json")


@app.put("/admin/products/{product_id}")
async def admin_update_product(product_id: str, request: ProductForm):
    return storefront.admin.save_product(request, product_id).model_dump(mode="json")


@app.delete("/admin/products/{product_id}")
async def admin_delete_product(product_id: str):
    storefront.admin.delete_product(product_id)
    return {"success": True}


@app.get("/admin/categories")
async def admin_list_categories():
    categories = storefront.admin.list_categories()
    return {"count": len(categories), "categories": [c.model_dump(mode="json") for c in categories]}


@app.post("/admin/categories")
async def admin_create_category(request: CategoryForm):
    return storefront.admin.save_category(request).model_dump(mode="json")


@app.put("/admin/categories/{category_id}")
async def admin_update_category(category_id: str, request: CategoryForm):
    return storefront.admin.save_category(request, category_id).model_dump(mode="json")


@app.delete("/admin/categories/{category_id}")
async def admin_delete_category(category_id: str):
    storefront.admin.delete_category(category_id)
    return {"success": True}


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Run the HTTP server."""
    import uvicorn

    if reload:
        uvicorn.run("storefront_server.http_server:app", host=host, port=port, reload=True, log_level="info")
    else:
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
