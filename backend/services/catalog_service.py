"""
Catalog service - product listing for shoppers and product CRUD for the admin.

The checkout treats the catalog as read-only: DatabaseCatalog and get_catalog_product()
resolve product ids into CatalogProduct values before they enter a cart.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Product
from domain.cart import CatalogProduct
from domain.constants import SAMPLE_PRODUCTS
from domain.errors import NotFoundError

logger = logging.getLogger(__name__)


async def create_product(
    db: AsyncSession,
    *,
    name: str,
    description: str,
    price: Decimal,
    image_url: str,
) -> Product:
    product = Product(
        name=name,
        description=description,
        price=price,
        image_url=image_url,
        created_at=datetime.utcnow(),
    )
    db.add(product)
    await db.flush()
    logger.info(f"Product {product.id} created: {name}")
    return product


async def list_products(db: AsyncSession, *, limit: int | None = None, offset: int = 0) -> list[Product]:
    """Catalog, newest first."""
    query = select(Product).order_by(Product.created_at.desc(), Product.id.desc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)
    res = await db.execute(query)
    return res.scalars().all()


async def get_product(db: AsyncSession, *, product_id: int) -> Product | None:
    res = await db.execute(select(Product).where(Product.id == product_id))
    return res.scalar_one_or_none()


async def get_catalog_product(db: AsyncSession, *, product_id: int) -> CatalogProduct:
    """Resolve one product for the cart. Raises NotFoundError."""
    product = await get_product(db, product_id=product_id)
    if not product:
        raise NotFoundError("Product", str(product_id))
    return CatalogProduct.model_validate(product)


async def update_product(
    db: AsyncSession,
    *,
    product_id: int,
    name: str | None = None,
    description: str | None = None,
    price: Decimal | None = None,
    image_url: str | None = None,
) -> Product:
    """Update a product's fields. Only provided fields are updated."""
    product = await get_product(db, product_id=product_id)
    if not product:
        raise NotFoundError("Product", str(product_id))

    if name is not None:
        product.name = name
    if description is not None:
        product.description = description
    if price is not None:
        product.price = price
    if image_url is not None:
        product.image_url = image_url

    product.updated_at = datetime.utcnow()
    await db.flush()
    return product


async def delete_product(db: AsyncSession, *, product_id: int) -> Product:
    """
    Remove a product from the catalog.

    Past orders keep their own name/price snapshot, so no order is touched.
    """
    product = await get_product(db, product_id=product_id)
    if not product:
        raise NotFoundError("Product", str(product_id))
    await db.delete(product)
    await db.flush()
    logger.info(f"Product {product_id} deleted")
    return product


async def seed_products(db: AsyncSession) -> list[Product]:
    """Replace the whole catalog with the sample products."""
    await db.execute(delete(Product))
    products = [
        Product(
            name=p["name"],
            description=p["description"],
            price=Decimal(p["price"]),
            image_url=p["image_url"],
            created_at=datetime.utcnow(),
        )
        for p in SAMPLE_PRODUCTS
    ]
    db.add_all(products)
    await db.flush()
    logger.info(f"Catalog seeded with {len(products)} sample products")
    return products


class DatabaseCatalog:
    """Catalog provider backed by the products table."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def list_products(self) -> list[CatalogProduct]:
        return [CatalogProduct.model_validate(p) for p in await list_products(self._db)]

    async def get_product(self, product_id: int) -> CatalogProduct:
        return await get_catalog_product(self._db, product_id=product_id)


async def count_products(db: AsyncSession) -> int:
    res = await db.execute(select(func.count(Product.id)))
    return res.scalar_one()
