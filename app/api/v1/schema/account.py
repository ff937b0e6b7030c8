"""
# @Time    : 2025/10/5 9:59
# @Author  : Pedro
# @File    : account.py
# @Software: PyCharm
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.api.v1.schema import parse_decimal
from app.core.enums import PaymentRail


class AccountRegisterSchema(BaseModel):
    contact: str = Field(description="联系方式", min_length=2, max_length=128)
    password: str = Field(description="密码", min_length=6, max_length=64)
    referral_code: Optional[str] = Field(default=None, description="推荐码")


class AccountLoginSchema(BaseModel):
    contact: str
    password: str


class AccountOut(BaseModel):
    id: int
    contact: str
    balance: Decimal
    referral_code: Optional[str] = None
    referrer_id: Optional[int] = None

    model_config = {"from_attributes": True}


class WithdrawalCreateSchema(BaseModel):
    amount: Decimal
    rail: PaymentRail
    destination: str = Field(min_length=1, max_length=255, description="收款账户 / 地址")

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        return parse_decimal(v)
