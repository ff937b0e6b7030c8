"""
# @Time    : 2025/11/15 7:20
# @Author  : Pedro
# @File    : pricing_service.py
# @Software: PyCharm

定价引擎
--------------------------------
✅ 法币通道：fee = base * rate * fee% ，cny = base * rate + fee ，usdt = base
✅ USDT 通道：usdt = base + 随机尾数 [0.1000, 0.9999]，cny 按未加尾数的 base 计算
✅ 余额通道：usdt = base，必须全额覆盖
✅ 余额抵扣：不超过 min(余额, 应付)，非余额通道抵扣后剩余必须 > 0
"""
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from app.api.v1.model.product import Product
from app.core.enums import PaymentRail
from app.core.exception import InsufficientFundsError, InsufficientStockError, ValidationError
from app.util.money import q_cny, q_usdt, to_decimal

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class Quote:
    usdt_amount: Decimal
    cny_amount: Decimal
    fee_amount: Decimal


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int


def draw_nonce() -> Decimal:
    """订单尾数：区分同价并发订单，不是手续费"""
    return Decimal(random.randint(1000, 9999)) / Decimal(10000)


class PricingService:

    @staticmethod
    def price_order(
            base: Decimal,
            rail: PaymentRail,
            fee_percent: Decimal,
            rate: Decimal,
            nonce: Optional[Decimal] = None,
    ) -> Quote:
        base = to_decimal(base)
        rate = to_decimal(rate)
        fee_percent = to_decimal(fee_percent)
        if base <= 0:
            raise ValidationError("订单金额必须大于 0")

        if rail.is_fiat:
            fee = q_cny(base * rate * fee_percent / HUNDRED)
            return Quote(
                usdt_amount=q_usdt(base),
                cny_amount=q_cny(base * rate + fee),
                fee_amount=fee,
            )

        if rail.is_settlement:
            nonce = draw_nonce() if nonce is None else to_decimal(nonce)
            return Quote(
                usdt_amount=q_usdt(base + nonce),
                cny_amount=q_cny(base * rate),
                fee_amount=Decimal("0.00"),
            )

        return Quote(
            usdt_amount=q_usdt(base),
            cny_amount=q_cny(base * rate),
            fee_amount=Decimal("0.00"),
        )

    @staticmethod
    def catalog_base(items: Iterable[LineItem], products: dict[int, Product]) -> Decimal:
        """按目录价汇总订单基础金额（同时做数量 / 上架 / 库存预检）"""
        items = list(items)
        if not items:
            raise ValidationError("订单至少包含一件商品")

        total = Decimal(0)
        wanted: dict[int, int] = {}
        for item in items:
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError("购买数量必须大于 0")
            product = products.get(item.product_id)
            if product is None or not product.is_active:
                raise ValidationError(f"商品不存在或已下架: {item.product_id}")
            wanted[item.product_id] = wanted.get(item.product_id, 0) + item.quantity
            if product.stock < wanted[item.product_id]:
                raise InsufficientStockError(f"库存不足: {product.name}")
            total += to_decimal(product.price) * item.quantity
        return q_usdt(total)

    @staticmethod
    def apply_balance_deduction(
            quote: Quote,
            rail: PaymentRail,
            balance: Decimal,
            requested: Optional[Decimal],
            base: Decimal,
            rate: Decimal,
            fee_percent: Decimal,
    ) -> tuple[Quote, Decimal]:
        """
        返回 (抵扣后的报价, 实际抵扣额)
        BALANCE 通道全额扣款：报价保持原价，抵扣额 = 应付，剩余为 0
        """
        balance = to_decimal(balance)
        owed = quote.usdt_amount

        if rail is PaymentRail.BALANCE:
            if balance < owed:
                raise InsufficientFundsError("余额不足以支付该订单")
            return quote, owed

        if requested is None:
            return quote, Decimal("0.0000")
        requested = to_decimal(requested)
        if requested < 0:
            raise ValidationError("抵扣金额不能为负数")
        if requested == 0:
            return quote, Decimal("0.0000")

        deducted = q_usdt(min(requested, balance, owed))
        if deducted <= 0:
            return quote, Decimal("0.0000")
        if deducted >= owed:
            raise ValidationError("balance support cannot equal or exceed order amount")

        base = to_decimal(base)
        rate = to_decimal(rate)
        if rail.is_settlement:
            remaining_base = max(base - deducted, Decimal(0))
            return Quote(
                usdt_amount=q_usdt(owed - deducted),
                cny_amount=q_cny(remaining_base * rate),
                fee_amount=quote.fee_amount,
            ), deducted

        repriced = PricingService.price_order(base - deducted, rail, fee_percent, rate)
        return repriced, deducted
