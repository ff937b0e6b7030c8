"""
# @Time    : 2025/11/2 19:45
# @Author  : Pedro
# @File    : withdrawal_service.py
# @Software: PyCharm

提现申请
--------------------------------
✅ 申请时即扣除全额（withdrawal 流水），审核通过不再动余额
✅ 驳回时原路退回（withdrawal_reversal 流水）
✅ 确认 / 驳回都是条件更新，重复点击不会重复退款
"""
from decimal import Decimal
from typing import Optional

from loguru import logger
from sqlalchemy import update

from app.api.v1.model.withdrawal import WithdrawalRequest
from app.api.v1.services.ledger_service import LedgerService
from app.config.settings_manager import get_current_settings
from app.core.db import get_session_factory, transaction
from app.core.enums import LedgerCategory, PaymentRail, WithdrawalStatus
from app.core.exception import NotFound, ValidationError
from app.util.money import q_usdt, to_decimal


class WithdrawalService:

    @staticmethod
    def quote_fee(amount: Decimal) -> tuple[Decimal, Decimal]:
        """返回 (手续费, 实际到账)"""
        cfg = get_current_settings().withdrawal
        fee = q_usdt(to_decimal(cfg.fee_fixed) + amount * to_decimal(cfg.fee_percent) / Decimal(100))
        return fee, q_usdt(amount - fee)

    @staticmethod
    async def create(account_id: int, amount: Decimal, rail: PaymentRail, destination: str) -> WithdrawalRequest:
        cfg = get_current_settings().withdrawal
        amount = q_usdt(amount)
        if amount < to_decimal(cfg.min_amount):
            raise ValidationError(f"最低提现金额为 {cfg.min_amount} USDT")
        if rail is PaymentRail.BALANCE:
            raise ValidationError("不支持的提现方式")
        if not destination or not destination.strip():
            raise ValidationError("请填写收款账户")

        fee, net = WithdrawalService.quote_fee(amount)
        if net <= 0:
            raise ValidationError("扣除手续费后到账金额必须大于 0")

        async with transaction() as session:
            request = WithdrawalRequest(
                account_id=account_id,
                amount=amount,
                fee=fee,
                net_amount=net,
                rail=rail.value,
                destination=destination.strip(),
                status=WithdrawalStatus.PENDING.value,
            )
            session.add(request)
            await session.flush()
            await LedgerService.apply(
                session, account_id, -amount, LedgerCategory.WITHDRAWAL,
                memo=f"提现申请 #{request.id} {rail.label()}", reference=f"withdrawal:{request.id}",
            )

        logger.info(f"💸 提现申请 #{request.id} account={account_id} amount={amount} net={net}")
        return request

    @staticmethod
    async def get(withdrawal_id: int) -> WithdrawalRequest:
        async with get_session_factory()() as session:
            request = await session.get(WithdrawalRequest, withdrawal_id)
        if request is None:
            raise NotFound("提现申请不存在")
        return request

    @staticmethod
    async def complete(withdrawal_id: int) -> bool:
        """运营确认已打款：只改状态"""
        async with transaction() as session:
            if await session.get(WithdrawalRequest, withdrawal_id) is None:
                raise NotFound("提现申请不存在")
            result = await session.execute(
                update(WithdrawalRequest)
                .where(
                    WithdrawalRequest.id == withdrawal_id,
                    WithdrawalRequest.status == WithdrawalStatus.PENDING.value,
                )
                .values(status=WithdrawalStatus.COMPLETED.value)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    @staticmethod
    async def reject(withdrawal_id: int, reason: Optional[str] = None) -> bool:
        """运营驳回：退回冻结金额并写冲正流水"""
        async with transaction() as session:
            request = await session.get(WithdrawalRequest, withdrawal_id)
            if request is None:
                raise NotFound("提现申请不存在")
            result = await session.execute(
                update(WithdrawalRequest)
                .where(
                    WithdrawalRequest.id == withdrawal_id,
                    WithdrawalRequest.status == WithdrawalStatus.PENDING.value,
                )
                .values(status=WithdrawalStatus.REJECTED.value, reject_reason=(reason or "")[:255] or None)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False

            await LedgerService.apply(
                session, request.account_id, to_decimal(request.amount), LedgerCategory.WITHDRAWAL_REVERSAL,
                memo=f"提现 #{withdrawal_id} 被驳回退回" + (f"：{reason}" if reason else ""),
                reference=f"withdrawal_reversal:{withdrawal_id}",
            )

        logger.info(f"↩️ 提现 #{withdrawal_id} 已驳回并退回余额")
        return True
