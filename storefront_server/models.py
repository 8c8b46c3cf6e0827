"""Data models for storefront entities."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Profile role."""

    CUSTOMER = "customer"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Profile(BaseModel):
    """Profile row attached to an authenticated identity."""

    id: str = Field(description="Identity ID (same as the auth user id)")
    email: str = Field(description="Email address")
    full_name: Optional[str] = Field(None, description="Display name")
    avatar_url: Optional[str] = Field(None, description="Avatar image URL")
    role: Role = Field(default=Role.CUSTOMER, description="customer or admin")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Category(BaseModel):
    """Product category."""

    id: str
    name: str
    slug: str = Field(description="URL slug, unique")
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Product(BaseModel):
    """Catalog product. Also used as the cart snapshot."""

    id: str = Field(description="Product ID")
    name: str = Field(description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: Decimal = Field(ge=0, description="Product price")
    compare_at_price: Optional[Decimal] = Field(None, description="Original price if discounted")
    category_id: Optional[str] = None
    image_url: Optional[str] = Field(None, description="Main image URL")
    images: list[str] = Field(default_factory=list, description="Gallery image URLs")
    inventory_count: int = Field(default=0, description="Units in stock")
    sku: Optional[str] = None
    is_active: bool = Field(default=True, description="Visible in the storefront")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    categories: Optional[Category] = Field(None, description="Embedded category")

    @field_validator("images", mode="before")
    @classmethod
    def _null_images(cls, value):
        return value or []


class Address(BaseModel):
    """Saved customer address."""

    id: str
    user_id: str
    full_name: str
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "US"
    phone: Optional[str] = None
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ShippingAddress(BaseModel):
    """Address snapshot embedded in an order."""

    full_name: str
    email: str
    phone: Optional[str] = None
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "US"


class OrderItem(BaseModel):
    """Represents an item in an order."""

    id: Optional[str] = None
    order_id: str
    product_id: str
    quantity: int
    price: Decimal = Field(description="Unit price at order time")
    created_at: Optional[datetime] = None
    products: Optional[Product] = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class Order(BaseModel):
    """Represents an order."""

    id: str = Field(description="Order ID")
    user_id: str
    order_number: str = Field(description="Server generated order number")
    status: OrderStatus = Field(default=OrderStatus.PENDING)
    total_amount: Decimal = Field(description="Order total value")
    shipping_address: ShippingAddress
    billing_address: Optional[ShippingAddress] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    order_items: list[OrderItem] = Field(default_factory=list)

    @field_validator("order_items", mode="before")
    @classmethod
    def _null_items(cls, value):
        return value or []


class CartItem(BaseModel):
    """One line of the cart: product snapshot plus quantity."""

    product: Product
    quantity: int = Field(ge=1, description="Quantity of the product")

    @property
    def subtotal(self) -> Decimal:
        return self.product.price * self.quantity


class User(BaseModel):
    """Identity returned by the auth service."""

    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[datetime] = None


class AuthCredentials(BaseModel):
    """Authentication credentials."""

    email: str
    password: str


class SessionData(BaseModel):
    """Persisted auth session."""

    access_token: Optional[str] = Field(None, description="Bearer token")
    refresh_token: Optional[str] = Field(None, description="Refresh token")
    user_id: Optional[str] = Field(None, description="User ID")
    user_email: Optional[str] = Field(None, description="User email")
    is_authenticated: bool = Field(default=False, description="Authentication status")


class AddressForm(BaseModel):
    """Input for creating or editing an address."""

    full_name: str
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "US"
    phone: Optional[str] = None
    is_default: bool = False


class CheckoutForm(BaseModel):
    """Shipping details collected at checkout."""

    full_name: str
    email: str
    phone: Optional[str] = None
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "US"
    notes: Optional[str] = None


class ProductForm(BaseModel):
    """Input for creating or editing a product."""

    name: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    compare_at_price: Optional[Decimal] = None
    category_id: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: list[str] = Field(default_factory=list)
    inventory_count: int = 0
    sku: Optional[str] = None
    is_active: bool = True


class CategoryForm(BaseModel):
    """Input for creating or editing a category."""

    name: str
    slug: str = ""
    description: Optional[str] = None
    image_url: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Editable profile fields."""

    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class DashboardStats(BaseModel):
    """Counts shown on the admin dashboard."""

    total_products: int = 0
    active_products: int = 0
    total_categories: int = 0
    total_orders: int = 0


class OrderSummary(BaseModel):
    """Order row as listed in recent activity."""

    id: str
    order_number: str
    status: OrderStatus
    total_amount: Decimal
    created_at: Optional[datetime] = None


class ProfileStats(BaseModel):
    """Store-wide figures shown on the admin profile."""

    total_products: int = 0
    total_orders: int = 0
    total_customers: int = 0
    total_revenue: Decimal = Decimal("0")
    recent_activity: list[OrderSummary] = Field(default_factory=list)
