# app/api/v1/public.py
from fastapi import APIRouter, Query

from app.api.cms.services.catalog_service import CatalogService
from app.api.v1.services.registry import get_config_provider
from app.core.response import StoreResponse

rp = APIRouter(prefix="/public", tags=["公共数据"])


@rp.get("/config", name="汇率 / 手续费")
async def public_config():
    config = await get_config_provider().get()
    return StoreResponse.success({
        "rate": config.rate,
        "fee_percent": config.fee_percent,
        "wallet": config.receiving_address,
    })


@rp.get("/products", name="商品列表")
async def public_products(category: str | None = Query(None)):
    products = await CatalogService.list_products(active_only=True, category=category)
    return StoreResponse.success({
        "products": products,
        "categories": sorted({p.category for p in products if p.category}),
    })
