# -*- coding: utf-8 -*-
"""
# @Time    : 2025/11/16 02:11
# @Author  : Pedro
# @File    : order.py
# @Software: PyCharm
"""

from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.core.enums import OrderKind, OrderStatus
from app.core.interface import InfoCrud


class Order(InfoCrud):
    """
    🧾 订单主表
    ----------------------
    status:
        pending          -> 待支付
        awaiting_review  -> 已上传付款凭证，待运营审核
        paid             -> 已支付
        shipped          -> 已发货（仅实物）
        cancelled        -> 买家取消
        closed           -> 运营关闭

    usdt_amount / cny_amount 在创建时按快照汇率固定，
    只有 change_rail 会重新定价。
    """

    __tablename__ = "orders"

    order_no = Column(String(32), unique=True, index=True, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), index=True, nullable=False)

    kind = Column(String(10), nullable=False, default=OrderKind.GOODS.value)
    description = Column(String(500))
    rail = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    # 价格结构
    base_amount = Column(Numeric(20, 4), nullable=False)
    usdt_amount = Column(Numeric(20, 4), nullable=False)
    cny_amount = Column(Numeric(20, 2), nullable=False)
    fee_amount = Column(Numeric(20, 2), nullable=False, default=0)
    balance_deducted = Column(Numeric(20, 4), nullable=False, default=0)
    snapshot_rate = Column(Numeric(20, 6), nullable=False)

    shipping_info = Column(JSON, nullable=True)
    tracking_number = Column(String(128), nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    buyer_confirmed_at = Column(DateTime(timezone=True), nullable=True)

    # 运营上传的收款码 / 买家上传的付款截图（外部存储引用）
    payment_code_ref = Column(String(500), nullable=True)
    evidence_ref = Column(String(500), nullable=True)

    # 链上到账的交易哈希，一笔转账只能确认一个订单
    payment_tx_id = Column(String(128), unique=True, nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def requires_shipping(self) -> bool:
        return self.shipping_info is not None


class OrderItem(InfoCrud):
    """
    📦 订单商品明细表
    """

    __tablename__ = "order_items"

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(20, 4), nullable=False)
    subtotal = Column(Numeric(20, 4), nullable=False)

    order = relationship("Order", back_populates="items")
