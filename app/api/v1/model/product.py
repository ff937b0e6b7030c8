"""
# @Time    : 2025/11/10 14:40
# @Author  : Pedro
# @File    : product.py
# @Software: PyCharm
"""
from sqlalchemy import Boolean, Column, Integer, Numeric, String, Text

from app.core.enums import ProductKind
from app.core.interface import InfoCrud


class Product(InfoCrud):
    """商品（价格以 USDT 计）"""

    __tablename__ = "products"

    name = Column(String(255), nullable=False)
    price = Column(Numeric(20, 4), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    category = Column(String(100))
    description = Column(Text)
    # virtual 虚拟商品 / physical 实物（需要收货信息）
    kind = Column(String(20), nullable=False, default=ProductKind.VIRTUAL.value)
    image_url = Column(String(500))
    is_active = Column(Boolean, nullable=False, default=True)
