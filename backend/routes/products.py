"""
Product endpoints - public catalog listing plus admin product management.
"""

import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Product
from deps import Pagination, pagination_params, require_admin
from domain.responses import paginated_response, success_response
from models import ProductCreateRequest, ProductUpdateRequest
from services import catalog_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["products"])


def _product_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price": float(p.price),
        "image_url": p.image_url,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


@router.get("/api/products")
async def list_products(
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    products = await catalog_service.list_products(db, limit=page["limit"], offset=page["offset"])
    total = await catalog_service.count_products(db)
    return paginated_response(
        [_product_dict(p) for p in products],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.post("/api/products", status_code=201)
async def create_product(
    request: ProductCreateRequest,
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    product = await catalog_service.create_product(
        db,
        name=request.name,
        description=request.description,
        price=request.price,
        image_url=request.image_url,
    )
    await db.commit()
    return success_response({"product": _product_dict(product)})


@router.put("/api/products/{product_id}")
async def update_product(
    request: ProductUpdateRequest,
    product_id: int = Path(..., gt=0),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    product = await catalog_service.update_product(
        db,
        product_id=product_id,
        name=request.name,
        description=request.description,
        price=request.price,
        image_url=request.image_url,
    )
    await db.commit()
    return success_response({"product": _product_dict(product)})


@router.delete("/api/products/{product_id}")
async def delete_product(
    product_id: int = Path(..., gt=0),
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await catalog_service.delete_product(db, product_id=product_id)
    await db.commit()
    return success_response({"deleted": product_id})


@router.post("/api/seed")
async def seed_catalog(
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Replace the catalog with the sample products."""
    products = await catalog_service.seed_products(db)
    await db.commit()
    return success_response(
        {"products": [_product_dict(p) for p in products]},
        meta={"count": len(products)},
    )
