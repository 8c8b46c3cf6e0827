"""Public product and category browsing."""

import logging
from typing import Optional

from .errors import NotFoundError, OutOfStockError, PlatformError
from .models import Category, Product
from .platform_client import PlatformClient

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "https://images.pexels.com/photos/163064/play-stone-network-networked-interactive-163064.jpeg"

PRODUCT_WITH_CATEGORY = "*, categories(*)"


def check_stock(product: Product, quantity: int, in_cart: int = 0) -> None:
    """Raise OutOfStockError unless ``in_cart + quantity`` units are in stock."""
    if product.inventory_count <= 0 or in_cart + quantity > product.inventory_count:
        raise OutOfStockError(product.name, product.inventory_count)


def product_images(product: Product) -> list[str]:
    """
    Gallery images for a product.

    Non-blank entries of ``images`` in order, with ``image_url`` put first
    when it is not already listed. Falls back to a placeholder.
    """
    images = [image for image in product.images if isinstance(image, str) and image.strip()]
    if product.image_url and product.image_url not in images:
        images.insert(0, product.image_url)
    if not images:
        images.append(PLACEHOLDER_IMAGE)
    return images


def primary_image(product: Product) -> str:
    """Best single image for product listings."""
    if product.image_url:
        return product.image_url
    if product.images:
        first = product.images[0]
        if isinstance(first, str) and first.strip():
            return first
    return PLACEHOLDER_IMAGE


class CatalogService:
    """Read-only access to active products and categories."""

    def __init__(self, platform: PlatformClient) -> None:
        self.platform = platform

    def featured_products(self, limit: int = 8) -> list[Product]:
        rows = (
            self.platform.table("products")
            .select(PRODUCT_WITH_CATEGORY)
            .eq("is_active", True)
            .limit(limit)
            .execute()
        )
        return [Product.model_validate(row) for row in rows]

    def list_categories(self, limit: Optional[int] = None) -> list[Category]:
        query = self.platform.table("categories").select("*").order("name")
        if limit is not None:
            query = query.limit(limit)
        return [Category.model_validate(row) for row in query.execute()]

    def get_category_by_slug(self, slug: str) -> Category:
        rows = self.platform.table("categories").select("*").eq("slug", slug).limit(1).execute()
        if not rows:
            raise NotFoundError(f"Category not found: {slug}")
        return Category.model_validate(rows[0])

    def list_products(
        self, category_slug: Optional[str] = None, search: Optional[str] = None
    ) -> list[Product]:
        """
        List active products, newest first.

        Args:
            category_slug: Only products in this category
            search: Case-insensitive match on name or description

        Raises:
            NotFoundError: If category_slug names no category
        """
        query = (
            self.platform.table("products")
            .select(PRODUCT_WITH_CATEGORY)
            .eq("is_active", True)
            .order("created_at", ascending=False)
        )
        if category_slug:
            category = self.get_category_by_slug(category_slug)
            query = query.eq("category_id", category.id)

        products = [Product.model_validate(row) for row in query.execute()]

        if search:
            needle = search.strip().lower()
            products = [
                p for p in products
                if needle in p.name.lower() or needle in (p.description or "").lower()
            ]
        return products

    def get_product(self, product_id: str) -> Product:
        """
        Fetch one active product.

        Raises:
            NotFoundError: If the product does not exist or is inactive
        """
        try:
            row = (
                self.platform.table("products")
                .select(PRODUCT_WITH_CATEGORY)
                .eq("id", product_id)
                .eq("is_active", True)
                .single()
                .execute()
            )
        except PlatformError as e:
            # 406: no row matched; 400: malformed id
            if e.status_code not in (400, 404, 406):
                raise
            logger.info(f"Product {product_id} not found: {e}")
            raise NotFoundError("Product not found") from e
        if not row:
            raise NotFoundError("Product not found")
        return Product.model_validate(row)
