"""
# @Time    : 2025/11/16 15:20
# @Author  : Pedro
# @File    : test_ledger.py
# @Software: PyCharm
"""
import asyncio
from decimal import Decimal

import pytest

from app.api.v1.services.ledger_service import LedgerService
from app.api.v1.services.withdrawal_service import WithdrawalService
from app.core.db import transaction
from app.core.enums import LedgerCategory, PaymentRail
from app.core.exception import InsufficientFundsError, NotFound

D = Decimal


async def _apply(account_id, amount, category=LedgerCategory.OPERATOR_ADJUSTMENT):
    async with transaction() as session:
        return await LedgerService.apply(session, account_id, D(amount), category, memo="test")


async def test_entry_snapshots_resulting_balance(make_account):
    account = await make_account()
    first = await _apply(account.id, "12.5")
    second = await _apply(account.id, "-2.25", LedgerCategory.SPEND)
    assert first.balance_after == D("12.5000")
    assert second.balance_after == D("10.2500")


async def test_debit_below_zero_is_rejected_without_entry(make_account):
    account = await make_account("3")
    with pytest.raises(InsufficientFundsError):
        await _apply(account.id, "-3.0001", LedgerCategory.SPEND)
    history = await LedgerService.history(account.id)
    assert len(history) == 1
    assert history[-1].balance_after == D("3.0000")


async def test_exact_balance_can_be_spent_after_fractional_credits(make_account):
    account = await make_account()
    await _apply(account.id, "0.7", LedgerCategory.TOPUP)
    await _apply(account.id, "0.1", LedgerCategory.TOPUP)

    spent = await _apply(account.id, "-0.8", LedgerCategory.SPEND)
    assert spent.balance_after == D("0.0000")

    async with transaction() as session:
        assert await LedgerService.balance_of(session, account.id) == D("0")
    with pytest.raises(InsufficientFundsError):
        await _apply(account.id, "-0.0001", LedgerCategory.SPEND)


async def test_unknown_account(make_account):
    with pytest.raises(NotFound):
        await _apply(999, "1")
    with pytest.raises(NotFound):
        await LedgerService.history(999)


async def test_concurrent_debits_never_overdraw(make_account):
    account = await make_account("10")

    async def debit():
        try:
            await _apply(account.id, "-4", LedgerCategory.SPEND)
            return True
        except InsufficientFundsError:
            return False

    results = await asyncio.gather(*[debit() for _ in range(5)])
    assert results.count(True) == 2

    async with transaction() as session:
        assert await LedgerService.balance_of(session, account.id) == D("2.0000")


async def test_conservation_over_mixed_operations(make_account):
    referrer = await make_account()
    account = await make_account("50", referral_code=referrer.referral_code)

    await _apply(account.id, "20", LedgerCategory.TOPUP)
    await _apply(account.id, "-7.5", LedgerCategory.SPEND)
    request = await WithdrawalService.create(account.id, D("15"), PaymentRail.ALIPAY, "alipay:buyer")
    await WithdrawalService.reject(request.id, "信息有误")
    await WithdrawalService.create(account.id, D("10"), PaymentRail.USDT, "TAddr")

    history = await LedgerService.history(account.id)
    running = D(0)
    for entry in history:
        running += entry.amount
        assert entry.balance_after == running

    async with transaction() as session:
        assert await LedgerService.balance_of(session, account.id) == running == D("52.5000")
