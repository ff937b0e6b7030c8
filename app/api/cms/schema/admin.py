"""
# @Time    : 2025/10/30 20:42
# @Author  : Pedro
# @File    : admin.py
# @Software: PyCharm
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.api.v1.schema import parse_decimal
from app.core.enums import ProductKind


class PaymentDecisionSchema(BaseModel):
    order_no: str
    allow_expired: bool = False
    reason: Optional[str] = None


class WithdrawalDecisionSchema(BaseModel):
    withdrawal_id: int
    reason: Optional[str] = None


class OrderCloseSchema(BaseModel):
    order_no: str


class ShipSchema(BaseModel):
    order_no: str
    tracking_number: str = Field(min_length=1, max_length=128)


class PaymentCodeSchema(BaseModel):
    order_no: str
    payment_code_ref: str = Field(min_length=1, max_length=500)


class ManualAdjustSchema(BaseModel):
    """管理员手动调账（正数入账，负数扣款）"""
    account_id: int
    amount: Decimal
    memo: str = Field(min_length=1, max_length=255)

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        return parse_decimal(v)


class ConfigUpdateSchema(BaseModel):
    rate: Optional[Decimal] = None
    fee_percent: Optional[Decimal] = None
    receiving_address: Optional[str] = None

    @field_validator("rate", "fee_percent", mode="before")
    @classmethod
    def validate_decimal(cls, v):
        return parse_decimal(v, allow_empty=True)


class ProductSchema(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    price: Decimal
    stock: int = 0
    category: Optional[str] = None
    description: Optional[str] = None
    kind: ProductKind = ProductKind.VIRTUAL
    image_url: Optional[str] = None
    is_active: bool = True

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v):
        return parse_decimal(v)


class ProductUpdateSchema(BaseModel):
    name: Optional[str] = None
    price: Optional[Decimal] = None
    stock: Optional[int] = None
    category: Optional[str] = None
    description: Optional[str] = None
    kind: Optional[ProductKind] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v):
        return parse_decimal(v, allow_empty=True)


class DangerRequestSchema(BaseModel):
    action: str = Field(description="wipe_orders / full_reset")


class DangerExecuteSchema(BaseModel):
    action: str
    code: str


class CommandSchema(BaseModel):
    text: str
