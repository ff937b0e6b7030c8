"""
# @Time    : 2025/11/16 14:05
# @Author  : Pedro
# @File    : order.py
# @Software: PyCharm
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.api.v1.schema import parse_decimal
from app.core.enums import PaymentRail


class ShippingInfo(BaseModel):
    """收货信息（实物商品必填），在边界处解析一次，后续只流转结构化数据"""
    name: str = Field(min_length=1, max_length=64, description="收件人")
    tel: str = Field(min_length=3, max_length=32, description="电话")
    addr: str = Field(min_length=2, max_length=255, description="地址")


class OrderItemSchema(BaseModel):
    product_id: int
    quantity: int = Field(default=1, description="数量")


class OrderCreateSchema(BaseModel):
    items: Optional[List[OrderItemSchema]] = None
    product_id: Optional[int] = Field(default=None, description="单商品快捷下单")
    quantity: int = 1
    rail: PaymentRail
    shipping_info: Optional[ShippingInfo] = None
    use_balance: Optional[Decimal] = Field(default=None, description="希望用余额抵扣的金额")

    @field_validator("use_balance", mode="before")
    @classmethod
    def validate_use_balance(cls, v):
        return parse_decimal(v, allow_empty=True)

    @model_validator(mode="after")
    def fill_items(self):
        if not self.items:
            if self.product_id is None:
                raise ValueError("请选择商品")
            self.items = [OrderItemSchema(product_id=self.product_id, quantity=self.quantity)]
        return self


class TopupCreateSchema(BaseModel):
    amount: Decimal
    rail: PaymentRail

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        return parse_decimal(v)


class ChangeRailSchema(BaseModel):
    order_no: str
    rail: PaymentRail


class BuyerOrderActionSchema(BaseModel):
    order_no: str


class EvidenceSchema(BaseModel):
    order_no: str
    evidence_ref: str = Field(min_length=1, max_length=500, description="付款截图的存储引用")
