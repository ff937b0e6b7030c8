"""
# @Time    : 2025/11/16 10:02
# @Author  : Pedro
# @File    : referral_service.py
# @Software: PyCharm

推荐返佣
--------------------------------
✅ 只发一级（直推上级），bonus = amount * bonus_rate，向下取整到 4 位
✅ 在触发交易提交之后、独立事务内入账；失败只重试 / 记日志，不回滚买家侧
✅ 流水 reference = referral:{订单号}，重复执行不会重复发放
"""
import asyncio
from decimal import Decimal
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.api.v1.model.account import Account
from app.api.v1.model.ledger_entry import LedgerEntry
from app.api.v1.services.ledger_service import LedgerService
from app.config.settings_manager import get_current_settings
from app.core.db import transaction
from app.core.enums import LedgerCategory, OrderKind
from app.core.exception import InvalidStateError, NotFound, ValidationError
from app.extension.telegram.notifier import Notifier, get_notifier
from app.util.money import q_usdt_down, to_decimal

KIND_LABELS = {
    OrderKind.GOODS: "购物",
    OrderKind.TOPUP: "充值",
}


def referral_reference(trigger: str) -> str:
    return f"referral:{trigger}"


class ReferralService:

    def __init__(self, notifier: Optional[Notifier] = None):
        settings = get_current_settings()
        self.bonus_rate = to_decimal(settings.referral.bonus_rate)
        self.max_retries = max(settings.referral.max_retries, 1)
        self.retry_delay = settings.referral.retry_delay
        self._notifier = notifier

    @property
    def notifier(self) -> Notifier:
        return self._notifier or get_notifier()

    # ======================================================
    # 💸 发放返佣
    # ======================================================
    async def apply_referral_bonus(
            self,
            buyer_id: int,
            amount: Decimal,
            kind: OrderKind,
            reference: str,
    ) -> Optional[Decimal]:
        """
        返回实际发放的金额；无上级 / 金额为 0 / 已发放过 返回 None
        此方法不向调用方抛异常
        """
        bonus = q_usdt_down(to_decimal(amount) * self.bonus_rate)
        if bonus <= 0:
            return None

        ref = referral_reference(reference)
        for attempt in range(1, self.max_retries + 1):
            try:
                paid = await self._credit_once(buyer_id, bonus, kind, ref)
            except IntegrityError:
                # 并发重复执行，唯一键已挡住
                logger.info(f"🔁 返佣已存在，跳过: {ref}")
                return None
            except (SQLAlchemyError, OSError) as e:
                logger.warning(f"⚠️ 返佣入账失败（第 {attempt}/{self.max_retries} 次）{ref}: {e}")
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay * attempt)
                continue

            if paid is None:
                return None
            referrer_id, buyer_contact = paid
            await self._notify(referrer_id, buyer_contact, bonus, kind)
            return bonus

        logger.error(f"❌ 返佣最终失败，需人工补发: buyer={buyer_id} amount={bonus} ref={ref}")
        return None

    async def _credit_once(self, buyer_id: int, bonus: Decimal, kind: OrderKind, ref: str):
        async with transaction() as session:
            buyer = await session.get(Account, buyer_id)
            if buyer is None or buyer.referrer_id is None:
                return None

            done = await session.scalar(select(LedgerEntry.id).where(LedgerEntry.reference == ref))
            if done is not None:
                return None

            label = KIND_LABELS.get(kind, kind.value)
            await LedgerService.apply(
                session,
                buyer.referrer_id,
                bonus,
                LedgerCategory.REFERRAL_PAYOUT,
                memo=f"推荐返佣：{buyer.contact} {label}",
                reference=ref,
            )
            return buyer.referrer_id, buyer.contact

    async def _notify(self, referrer_id: int, buyer_contact: str, bonus: Decimal, kind: OrderKind):
        try:
            await self.notifier.notify_account(referrer_id, {
                "type": "referral_payout",
                "amount": str(bonus),
                "from": buyer_contact,
                "kind": kind.value,
            })
        except Exception as e:
            logger.warning(f"⚠️ 返佣通知失败 referrer={referrer_id}: {e}")

    # ======================================================
    # 🔗 绑定上级
    # ======================================================
    @staticmethod
    async def bind_referrer(account_id: int, referral_code: str) -> Account:
        """已有账户补绑上级：拒绝自己推荐自己，以及形成环"""
        async with transaction() as session:
            account = await session.get(Account, account_id)
            if account is None:
                raise NotFound("账户不存在")
            if account.referrer_id is not None:
                raise InvalidStateError("已绑定推荐人")

            referrer = await session.scalar(
                select(Account).where(Account.referral_code == referral_code.strip().upper())
            )
            if referrer is None:
                raise ValidationError("推荐码无效")
            if referrer.id == account.id:
                raise ValidationError("不能绑定自己的推荐码")

            # 沿推荐链向上，遇到自己即成环
            seen = {account.id}
            cursor = referrer
            while cursor is not None and cursor.referrer_id is not None:
                if cursor.referrer_id in seen:
                    raise ValidationError("推荐关系不能形成环")
                seen.add(cursor.id)
                cursor = await session.get(Account, cursor.referrer_id)

            account.referrer_id = referrer.id
            logger.info(f"🔗 账户 {account.id} 绑定上级 {referrer.id}")
            return account
