"""
# @Time    : 2025/10/30 18:56
# @Author  : Pedro
# @File    : ledger_service.py
# @Software: PyCharm

账户余额 + 资金流水
--------------------------------
余额变动只走 LedgerService.apply：
    UPDATE accounts SET balance = round(balance + :d, 4) WHERE id = :id [AND round(balance + :d, 4) >= 0] RETURNING balance
单条语句完成“校验 + 修改 + 读回”，并发的扣款/入账不会交错读改写；
同一事务内追加一条带 balance_after 快照的流水。
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import Numeric, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.model.account import Account
from app.api.v1.model.ledger_entry import LedgerEntry
from app.core.db import get_session_factory
from app.core.enums import LedgerCategory
from app.core.exception import InsufficientFundsError, NotFound, ValidationError
from app.util.money import q_usdt


class LedgerService:

    @staticmethod
    async def apply(
            session: AsyncSession,
            account_id: int,
            amount: Decimal,
            category: LedgerCategory,
            memo: str = "",
            reference: Optional[str] = None,
    ) -> LedgerEntry:
        """
        在调用方事务内修改余额并写流水
        amount 为带符号金额：正数入账，负数扣款（余额不足抛 InsufficientFundsError）
        """
        amount = q_usdt(amount)
        if amount == 0:
            raise ValidationError("变动金额不能为 0")

        # SQLite 把 Numeric 存成 REAL，运算结果在库内先舍入到 4 位再比较和落库
        new_balance = func.round(Account.balance + amount, 4, type_=Numeric(20, 4))
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(balance=new_balance)
            .returning(Account.balance)
        )
        if amount < 0:
            stmt = stmt.where(new_balance >= 0)

        balance_after = (await session.execute(stmt)).scalar_one_or_none()
        if balance_after is None:
            exists = await session.scalar(select(Account.id).where(Account.id == account_id))
            if exists is None:
                raise NotFound("账户不存在")
            raise InsufficientFundsError()

        entry = LedgerEntry(
            account_id=account_id,
            category=category.value,
            amount=amount,
            balance_after=q_usdt(balance_after),
            memo=memo[:255] if memo else "",
            reference=reference,
        )
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def balance_of(session: AsyncSession, account_id: int) -> Decimal:
        balance = await session.scalar(select(Account.balance).where(Account.id == account_id))
        if balance is None:
            raise NotFound("账户不存在")
        return q_usdt(balance)

    @staticmethod
    async def history(account_id: int) -> list[LedgerEntry]:
        """按写入顺序返回某账户全部流水"""
        async with get_session_factory()() as session:
            exists = await session.scalar(select(Account.id).where(Account.id == account_id))
            if exists is None:
                raise NotFound("账户不存在")
            rows = await session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.account_id == account_id)
                .order_by(LedgerEntry.id.asc())
            )
            return list(rows.scalars().all())
