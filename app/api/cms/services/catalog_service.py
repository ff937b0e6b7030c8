"""
# @Time    : 2025/11/10 14:52
# @Author  : Pedro
# @File    : catalog_service.py
# @Software: PyCharm
"""
from enum import Enum
from typing import Any, Optional

from loguru import logger
from sqlalchemy import select

from app.api.v1.model.product import Product
from app.core.db import get_session_factory, transaction
from app.core.exception import NotFound, ValidationError

EDITABLE_FIELDS = {"name", "price", "stock", "category", "description", "kind", "image_url", "is_active"}


class CatalogService:

    @staticmethod
    def _check(data: dict[str, Any]):
        if isinstance(data.get("kind"), Enum):
            data["kind"] = data["kind"].value
        if "price" in data and data["price"] is not None and data["price"] <= 0:
            raise ValidationError("商品价格必须大于 0")
        if "stock" in data and data["stock"] is not None and data["stock"] < 0:
            raise ValidationError("库存不能为负数")

    @staticmethod
    async def create(**data: Any) -> Product:
        CatalogService._check(data)
        fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        product = await Product.create(**fields)
        logger.info(f"🆕 新增商品 #{product.id} {product.name}")
        return product

    @staticmethod
    async def update(product_id: int, **data: Any) -> Product:
        CatalogService._check(data)
        async with transaction() as session:
            product = await session.get(Product, product_id)
            if product is None:
                raise NotFound("商品不存在")
            for key, value in data.items():
                if key in EDITABLE_FIELDS and value is not None:
                    setattr(product, key, value)
        return product

    @staticmethod
    async def delete(product_id: int):
        async with transaction() as session:
            product = await session.get(Product, product_id)
            if product is None:
                raise NotFound("商品不存在")
            # 订单明细保存了名称 / 单价快照
            await session.delete(product)
        logger.info(f"🗑️ 删除商品 #{product_id}")

    @staticmethod
    async def list_products(active_only: bool = True, category: Optional[str] = None) -> list[Product]:
        async with get_session_factory()() as session:
            stmt = select(Product).order_by(Product.id.desc())
            if active_only:
                stmt = stmt.where(Product.is_active.is_(True))
            if category:
                stmt = stmt.where(Product.category == category)
            return list((await session.execute(stmt)).scalars().all())
