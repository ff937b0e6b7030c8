"""
# @Time    : 2025/11/16 17:30
# @Author  : Pedro
# @File    : test_catalog.py
# @Software: PyCharm
"""
from decimal import Decimal

import pytest

from app.api.cms.services.catalog_service import CatalogService
from app.core.enums import ProductKind
from app.core.exception import NotFound, ValidationError


async def test_create_update_list():
    product = await CatalogService.create(name="耳机", price=Decimal("19.9"), stock=3, kind=ProductKind.PHYSICAL,
                                          category="数码")
    assert product.kind == "physical"
    assert product.id is not None and product.is_active is True

    await CatalogService.update(product.id, stock=8, is_active=False)
    assert await CatalogService.list_products() == []

    products = await CatalogService.list_products(active_only=False, category="数码")
    assert [p.stock for p in products] == [8]


@pytest.mark.parametrize("data", [
    {"name": "x", "price": Decimal("0")},
    {"name": "x", "price": Decimal("1"), "stock": -1},
])
async def test_create_rejects_bad_values(data):
    with pytest.raises(ValidationError):
        await CatalogService.create(**data)


async def test_delete():
    product = await CatalogService.create(name="点卡", price=Decimal("5"))
    await CatalogService.delete(product.id)
    with pytest.raises(NotFound):
        await CatalogService.delete(product.id)
