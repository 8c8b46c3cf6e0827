"""Store administration: products, categories and statistics."""

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from .errors import DuplicateSlugError, NotFoundError, PlatformError
from .models import (
    Category,
    CategoryForm,
    DashboardStats,
    OrderSummary,
    Product,
    ProductForm,
    ProfileStats,
    Role,
)
from .platform_client import PlatformClient
from .session import SessionStore

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def generate_slug(name: str) -> str:
    """Lower-case the name and join alphanumeric runs with hyphens."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    return slug.strip("-")


def product_row(form: ProductForm) -> dict[str, Any]:
    """
    Build the products row for a form.

    The main image leads the ``images`` list, followed by the additional
    images without duplicates. Blank optional fields are stored as null.
    """
    images: list[str] = []
    if form.image_url:
        images.append(form.image_url)
    for image in form.additional_images:
        image = image.strip()
        if image and image not in images:
            images.append(image)

    return {
        "name": form.name,
        "description": form.description or None,
        "price": str(form.price),
        "compare_at_price": str(form.compare_at_price) if form.compare_at_price is not None else None,
        "category_id": form.category_id or None,
        "image_url": form.image_url or None,
        "images": images or None,
        "inventory_count": form.inventory_count or 0,
        "sku": form.sku or None,
        "is_active": form.is_active,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }


class AdminService:
    """Catalog management for admin profiles."""

    def __init__(self, platform: PlatformClient, session: SessionStore) -> None:
        self.platform = platform
        self.session = session

    def list_products(self) -> list[Product]:
        """All products, including inactive ones, newest first."""
        self.session.require_admin()
        rows = (
            self.platform.table("products")
            .select("*, categories(*)")
            .order("created_at", ascending=False)
            .execute()
        )
        return [Product.model_validate(row) for row in rows]

    def list_categories(self) -> list[Category]:
        self.session.require_admin()
        rows = self.platform.table("categories").select("*").order("name").execute()
        return [Category.model_validate(row) for row in rows]

    def save_product(self, form: ProductForm, product_id: Optional[str] = None) -> Product:
        """Create a product, or update the one with product_id."""
        self.session.require_admin()
        values = product_row(form)

        if product_id:
            rows = self.platform.table("products").update(values).eq("id", product_id).select().execute()
        else:
            rows = self.platform.table("products").insert(values).select().execute()

        if not rows:
            raise NotFoundError(f"Product not found: {product_id}")
        product = Product.model_validate(rows[0])
        logger.info(f"Saved product {product.id} ({product.name})")
        return product

    def delete_product(self, product_id: str) -> None:
        self.session.require_admin()
        self.platform.table("products").delete().eq("id", product_id).execute()
        logger.info(f"Deleted product {product_id}")

    def save_category(self, form: CategoryForm, category_id: Optional[str] = None) -> Category:
        """
        Create a category, or update the one with category_id.

        A blank slug is derived from the name.

        Raises:
            ValueError: If the slug has characters other than a-z, 0-9 and -
            DuplicateSlugError: If another category uses the slug
        """
        self.session.require_admin()
        slug = form.slug.strip() or generate_slug(form.name)
        if not SLUG_PATTERN.match(slug):
            raise ValueError("Only lowercase letters, numbers, and hyphens allowed")

        values = {
            "name": form.name,
            "description": form.description or None,
            "slug": slug,
            "image_url": form.image_url or None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            if category_id:
                rows = self.platform.table("categories").update(values).eq("id", category_id).select().execute()
            else:
                rows = self.platform.table("categories").insert(values).select().execute()
        except PlatformError as e:
            if e.is_unique_violation:
                raise DuplicateSlugError(slug) from e
            raise

        if not rows:
            raise NotFoundError(f"Category not found: {category_id}")
        category = Category.model_validate(rows[0])
        logger.info(f"Saved category {category.id} ({category.slug})")
        return category

    def delete_category(self, category_id: str) -> None:
        """Delete a category. Its products become uncategorized."""
        self.session.require_admin()
        self.platform.table("categories").delete().eq("id", category_id).execute()
        logger.info(f"Deleted category {category_id}")

    def dashboard_stats(self) -> DashboardStats:
        """Product, category and order counts."""
        self.session.require_admin()
        products = self.platform.table("products").select("id, is_active").execute()
        categories = self.platform.table("categories").select("id").execute()
        orders = self.platform.table("orders").select("id").execute()

        return DashboardStats(
            total_products=len(products),
            active_products=sum(1 for p in products if p.get("is_active")),
            total_categories=len(categories),
            total_orders=len(orders),
        )

    def profile_stats(self, recent: int = 5) -> ProfileStats:
        """Store totals plus the most recent orders."""
        self.session.require_admin()
        products = self.platform.table("products").select("id").execute()
        orders = (
            self.platform.table("orders")
            .select("id, total_amount, created_at, order_number, status")
            .execute()
        )
        customers = (
            self.platform.table("profiles")
            .select("id")
            .eq("role", Role.CUSTOMER.value)
            .execute()
        )

        summaries = [OrderSummary.model_validate(row) for row in orders]
        revenue = sum((o.total_amount for o in summaries), Decimal("0"))
        summaries.sort(
            key=lambda o: o.created_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )

        return ProfileStats(
            total_products=len(products),
            total_orders=len(orders),
            total_customers=len(customers),
            total_revenue=revenue,
            recent_activity=summaries[:recent],
        )
