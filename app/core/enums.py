# -*- coding:utf-8 -*-
"""
Storefront-Core 枚举定义
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
✅ 支付通道
✅ 订单状态 / 订单类型
✅ 资金流水类型
✅ 提现状态
"""

from enum import Enum


class PaymentRail(str, Enum):
    """
    支付通道
      - USDT：链上转账（TRC-20），由对账任务自动确认
      - ALIPAY / WECHAT：扫码法币支付，买家上传凭证后人工审核
      - BALANCE：账户余额全额支付
    """

    USDT = "USDT"
    ALIPAY = "ALIPAY"
    WECHAT = "WECHAT"
    BALANCE = "BALANCE"

    @property
    def is_settlement(self) -> bool:
        return self is PaymentRail.USDT

    @property
    def is_fiat(self) -> bool:
        return self in (PaymentRail.ALIPAY, PaymentRail.WECHAT)

    def label(self) -> str:
        labels = {
            PaymentRail.USDT: "USDT",
            PaymentRail.ALIPAY: "支付宝",
            PaymentRail.WECHAT: "微信",
            PaymentRail.BALANCE: "余额",
        }
        return labels.get(self, self.value)


class OrderStatus(str, Enum):
    PENDING = "pending"                  # 待支付
    AWAITING_REVIEW = "awaiting_review"  # 已上传凭证，待审核
    PAID = "paid"                        # 已支付
    SHIPPED = "shipped"                  # 已发货
    CANCELLED = "cancelled"              # 买家取消
    CLOSED = "closed"                    # 运营关闭

    @classmethod
    def payable(cls) -> tuple["OrderStatus", ...]:
        """可以转入 paid 的来源状态"""
        return cls.PENDING, cls.AWAITING_REVIEW


class OrderKind(str, Enum):
    GOODS = "goods"
    TOPUP = "topup"


class ProductKind(str, Enum):
    VIRTUAL = "virtual"
    PHYSICAL = "physical"


class LedgerCategory(str, Enum):
    TOPUP = "topup"
    SPEND = "spend"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_REVERSAL = "withdrawal_reversal"
    REFERRAL_PAYOUT = "referral_payout"
    OPERATOR_ADJUSTMENT = "operator_adjustment"
    ORDER_REFUND = "order_refund"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"
