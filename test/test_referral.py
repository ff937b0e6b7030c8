"""
# @Time    : 2025/11/16 16:50
# @Author  : Pedro
# @File    : test_referral.py
# @Software: PyCharm
"""
from decimal import Decimal

import pytest

from app.api.v1.services.ledger_service import LedgerService
from app.api.v1.services.referral_service import ReferralService
from app.core.db import transaction
from app.core.enums import LedgerCategory, OrderKind
from app.core.exception import InvalidStateError, ValidationError

D = Decimal


async def _balance(account_id):
    async with transaction() as session:
        return await LedgerService.balance_of(session, account_id)


async def test_bonus_rounds_down_and_notifies(make_account, notifier):
    referrer = await make_account()
    buyer = await make_account(referral_code=referrer.referral_code)

    bonus = await ReferralService(notifier).apply_referral_bonus(buyer.id, D("10.4321"), OrderKind.GOODS, "ORD1")

    # 10.4321 * 0.05 = 0.521605
    assert bonus == D("0.5216")
    assert await _balance(referrer.id) == D("0.5216")
    entry = (await LedgerService.history(referrer.id))[-1]
    assert entry.category == LedgerCategory.REFERRAL_PAYOUT.value
    assert entry.reference == "referral:ORD1"
    assert "购物" in entry.memo
    assert notifier.accounts[-1] == (referrer.id, {
        "type": "referral_payout", "amount": "0.5216", "from": buyer.contact, "kind": "goods",
    })


async def test_bonus_paid_once_per_trigger(make_account):
    referrer = await make_account()
    buyer = await make_account(referral_code=referrer.referral_code)
    service = ReferralService()

    assert await service.apply_referral_bonus(buyer.id, D("20"), OrderKind.TOPUP, "T1") == D("1.0000")
    assert await service.apply_referral_bonus(buyer.id, D("20"), OrderKind.TOPUP, "T1") is None
    assert await _balance(referrer.id) == D("1.0000")


async def test_no_referrer_is_noop(make_account):
    buyer = await make_account()
    assert await ReferralService().apply_referral_bonus(buyer.id, D("100"), OrderKind.GOODS, "X") is None


async def test_tiny_amount_pays_nothing(make_account):
    referrer = await make_account()
    buyer = await make_account(referral_code=referrer.referral_code)
    assert await ReferralService().apply_referral_bonus(buyer.id, D("0.001"), OrderKind.GOODS, "Y") is None
    assert await LedgerService.history(referrer.id) == []


async def test_bind_referrer_rules(make_account):
    a = await make_account()
    b = await make_account(referral_code=a.referral_code)
    c = await make_account()

    with pytest.raises(ValidationError):
        await ReferralService.bind_referrer(c.id, c.referral_code)
    with pytest.raises(ValidationError):
        await ReferralService.bind_referrer(c.id, "NOSUCHCODE")
    with pytest.raises(ValidationError):
        await ReferralService.bind_referrer(a.id, b.referral_code)
    with pytest.raises(InvalidStateError):
        await ReferralService.bind_referrer(b.id, c.referral_code)

    bound = await ReferralService.bind_referrer(c.id, b.referral_code.lower())
    assert bound.referrer_id == b.id
