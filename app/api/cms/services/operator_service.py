"""
# @Time    : 2025/11/16 12:05
# @Author  : Pedro
# @File    : operator_service.py
# @Software: PyCharm

运营决策
--------------------------------
✅ 确认 / 驳回付款，确认 / 驳回提现，关闭订单，发货，手动调账，改配置
✅ 所有决策靠“当前状态”判断幂等：重复点击返回 changed=False，不再动钱
✅ 危险操作（清空订单 / 全站重置）两步确认：先领一次性确认码，120s 内执行
"""
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from loguru import logger
from sqlalchemy import delete

from app.api.v1.model import Account, LedgerEntry, Order, OrderItem, Product, WithdrawalRequest
from app.api.v1.services.config_service import RateFeeConfig, RateFeeConfigProvider
from app.api.v1.services.ledger_service import LedgerService
from app.api.v1.services.order_service import OrderService
from app.api.v1.services.withdrawal_service import WithdrawalService
from app.core.db import as_utc, transaction
from app.core.enums import LedgerCategory, OrderStatus, WithdrawalStatus
from app.core.exception import InvalidStateError, ValidationError
from app.extension.redis.redis_client import RedisClient, rds
from app.extension.telegram.notifier import Notifier, get_notifier
from app.util.redis_key_schema import redis_key_danger_code

DANGER_CODE_TTL = 120

WIPE_ORDERS = "wipe_orders"
FULL_RESET = "full_reset"
DANGER_ACTIONS = {
    WIPE_ORDERS: "删除所有订单",
    FULL_RESET: "清空全站数据",
}


@dataclass
class DecisionResult:
    changed: bool
    status: str
    message: str = ""


class OperatorService:

    def __init__(
            self,
            order_service: Optional[OrderService] = None,
            config_provider: Optional[RateFeeConfigProvider] = None,
            notifier: Optional[Notifier] = None,
            redis: Optional[RedisClient] = None,
    ):
        self.orders = order_service or OrderService(config_provider=config_provider, notifier=notifier)
        self.config_provider = config_provider or self.orders.config_provider
        self._notifier = notifier
        self.redis = redis or rds
        # 未启用 Redis 时确认码只保存在本进程
        self._codes: dict[str, tuple[str, float]] = {}

    @property
    def notifier(self) -> Notifier:
        return self._notifier or get_notifier()

    # ======================================================
    # 💳 付款审核
    # ======================================================
    async def confirm_payment(self, order_no: str, allow_expired: bool = False) -> DecisionResult:
        changed = await self.orders.mark_paid(order_no, source="operator", enforce_expiry=not allow_expired)
        order = await self.orders.get(order_no)
        if changed:
            logger.info(f"👮 运营确认收款 {order_no}")
            return DecisionResult(True, order.status, "已确认收款")

        if order.status in (OrderStatus.PENDING.value, OrderStatus.AWAITING_REVIEW.value):
            if as_utc(order.expires_at) <= self.orders.clock():
                raise InvalidStateError("订单已过期，如确已到账请强制确认")
        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.CLOSED.value):
            raise InvalidStateError("订单已取消 / 关闭，无法确认收款")
        return DecisionResult(False, order.status, "订单已处理，无需重复确认")

    async def reject_payment(self, order_no: str, reason: Optional[str] = None) -> DecisionResult:
        changed = await self.orders.reset_to_pending(order_no)
        order = await self.orders.get(order_no)
        if changed:
            logger.info(f"👮 运营驳回付款凭证 {order_no} reason={reason}")
            try:
                await self.notifier.notify_account(order.account_id, {
                    "type": "evidence_rejected", "order_no": order_no, "reason": reason or "",
                })
            except Exception as e:
                logger.warning(f"⚠️ 驳回通知失败: {e}")
            return DecisionResult(True, order.status, "已驳回，买家可重新上传凭证")

        if order.status == OrderStatus.PENDING.value:
            return DecisionResult(False, order.status, "订单已是待支付状态")
        raise InvalidStateError(f"订单状态为 {order.status}，无法驳回")

    # ======================================================
    # 💸 提现审核
    # ======================================================
    async def confirm_withdrawal(self, withdrawal_id: int) -> DecisionResult:
        changed = await WithdrawalService.complete(withdrawal_id)
        request = await WithdrawalService.get(withdrawal_id)
        if changed:
            logger.info(f"👮 提现 #{withdrawal_id} 已打款")
            return DecisionResult(True, request.status, "已确认打款")
        if request.status == WithdrawalStatus.COMPLETED.value:
            return DecisionResult(False, request.status, "提现已完成，无需重复确认")
        raise InvalidStateError("提现已被驳回，无法确认")

    async def reject_withdrawal(self, withdrawal_id: int, reason: Optional[str] = None) -> DecisionResult:
        changed = await WithdrawalService.reject(withdrawal_id, reason)
        request = await WithdrawalService.get(withdrawal_id)
        if changed:
            return DecisionResult(True, request.status, "已驳回并退回余额")
        if request.status == WithdrawalStatus.REJECTED.value:
            return DecisionResult(False, request.status, "提现已驳回，无需重复操作")
        raise InvalidStateError("提现已完成，无法驳回")

    # ======================================================
    # 📦 订单处理
    # ======================================================
    async def close_order(self, order_no: str) -> DecisionResult:
        changed = await self.orders.cancel(order_no, by_operator=True)
        return DecisionResult(changed, OrderStatus.CLOSED.value, "订单已关闭" if changed else "订单已是关闭状态")

    async def ship_order(self, order_no: str, tracking_number: str) -> DecisionResult:
        changed = await self.orders.ship(order_no, tracking_number)
        return DecisionResult(changed, OrderStatus.SHIPPED.value, "已发货" if changed else "物流单号未变化")

    async def set_payment_code(self, order_no: str, payment_code_ref: str) -> DecisionResult:
        order = await self.orders.set_payment_code(order_no, payment_code_ref)
        return DecisionResult(True, order.status, "收款码已更新")

    # ======================================================
    # 🧮 调账 / 配置
    # ======================================================
    @staticmethod
    async def adjust_balance(account_id: int, amount: Decimal, memo: str) -> LedgerEntry:
        if not memo or not memo.strip():
            raise ValidationError("调账必须填写原因")
        async with transaction() as session:
            entry = await LedgerService.apply(
                session, account_id, amount, LedgerCategory.OPERATOR_ADJUSTMENT, memo=memo.strip(),
            )
        logger.info(f"👮 手动调账 account={account_id} amount={amount} after={entry.balance_after}")
        return entry

    async def update_config(
            self,
            rate: Optional[Decimal] = None,
            fee_percent: Optional[Decimal] = None,
            receiving_address: Optional[str] = None,
    ) -> RateFeeConfig:
        return await self.config_provider.update(
            rate=rate, fee_percent=fee_percent, receiving_address=receiving_address,
        )

    # ======================================================
    # 💥 危险操作（两步确认）
    # ======================================================
    async def request_danger(self, action: str) -> str:
        if action not in DANGER_ACTIONS:
            raise ValidationError(f"未知操作: {action}")
        code = f"{secrets.randbelow(1_000_000):06d}"
        if self.redis.enabled:
            await self.redis.set(redis_key_danger_code(action), code, ex=DANGER_CODE_TTL)
        else:
            self._codes[action] = (code, time.monotonic() + DANGER_CODE_TTL)
        logger.warning(f"⚠️ 请求危险操作 {action}，确认码已生成")
        return code

    async def _consume_code(self, action: str, code: str) -> bool:
        if self.redis.enabled:
            # GETDEL：确认码只能被取走一次，输错同样作废
            expected = await self.redis.getdel(redis_key_danger_code(action))
            return expected is not None and secrets.compare_digest(str(expected), code)

        expected, deadline = self._codes.pop(action, (None, 0.0))
        if expected is None or time.monotonic() > deadline:
            return False
        return secrets.compare_digest(expected, code)

    async def execute_danger(self, action: str, code: str) -> dict[str, int]:
        if action not in DANGER_ACTIONS:
            raise ValidationError(f"未知操作: {action}")
        if not code or not await self._consume_code(action, code.strip()):
            raise ValidationError("确认码错误或已过期")

        if action == WIPE_ORDERS:
            tables = [OrderItem, Order]
        else:
            tables = [OrderItem, Order, LedgerEntry, WithdrawalRequest, Account, Product]

        counts: dict[str, int] = {}
        async with transaction() as session:
            for model in tables:
                result = await session.execute(delete(model))
                counts[model.__tablename__] = result.rowcount or 0

        logger.warning(f"💥 已执行危险操作 {action}: {counts}")
        return counts
