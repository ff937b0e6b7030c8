"""
# @Time    : 2025/11/16 17:00
# @Author  : Pedro
# @File    : test_withdrawal.py
# @Software: PyCharm
"""
from decimal import Decimal

import pytest

from app.api.v1.services.account_service import AccountService
from app.api.v1.services.withdrawal_service import WithdrawalService
from app.core.enums import LedgerCategory, PaymentRail, WithdrawalStatus
from app.core.exception import InsufficientFundsError, NotFound, ValidationError

D = Decimal


def test_quote_fee_uses_fixed_fee():
    assert WithdrawalService.quote_fee(D("25")) == (D("1.0000"), D("24.0000"))


async def test_create_debits_full_amount(make_account):
    account = await make_account("40")
    request = await WithdrawalService.create(account.id, D("25"), PaymentRail.USDT, " TDestAddress ")

    assert request.status == WithdrawalStatus.PENDING.value
    assert request.net_amount == D("24.0000")
    assert request.destination == "TDestAddress"

    entry = (await AccountService.ledger_history(account.id))[-1]
    assert entry.category == LedgerCategory.WITHDRAWAL.value
    assert entry.amount == D("-25.0000")
    assert entry.reference == f"withdrawal:{request.id}"


@pytest.mark.parametrize("amount, rail, destination", [
    ("9.9999", PaymentRail.USDT, "TDest"),
    ("20", PaymentRail.BALANCE, "TDest"),
    ("20", PaymentRail.ALIPAY, "  "),
])
async def test_create_rejections(make_account, amount, rail, destination):
    account = await make_account("100")
    with pytest.raises(ValidationError):
        await WithdrawalService.create(account.id, D(amount), rail, destination)


async def test_insufficient_balance_leaves_no_request(make_account):
    account = await make_account("12")
    with pytest.raises(InsufficientFundsError):
        await WithdrawalService.create(account.id, D("20"), PaymentRail.USDT, "TDest")
    with pytest.raises(NotFound):
        await WithdrawalService.get(1)
