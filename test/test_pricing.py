"""
# @Time    : 2025/11/16 15:10
# @Author  : Pedro
# @File    : test_pricing.py
# @Software: PyCharm
"""
from decimal import Decimal

import pytest

from app.api.v1.model import Product
from app.api.v1.services.pricing_service import LineItem, PricingService, Quote, draw_nonce
from app.core.enums import PaymentRail
from app.core.exception import InsufficientFundsError, InsufficientStockError, ValidationError

D = Decimal


def test_fiat_rail_applies_fee_on_converted_amount():
    quote = PricingService.price_order(D("10.00"), PaymentRail.ALIPAY, D("3"), D("7.2"))
    assert quote == Quote(usdt_amount=D("10.0000"), cny_amount=D("74.16"), fee_amount=D("2.16"))


def test_usdt_rail_adds_nonce_and_prices_cny_without_it():
    quote = PricingService.price_order(D("10.00"), PaymentRail.USDT, D("3"), D("7.2"), nonce=D("0.4321"))
    assert quote.usdt_amount == D("10.4321")
    assert quote.cny_amount == D("72.00")
    assert quote.fee_amount == 0


def test_cny_amount_is_deterministic_for_usdt_rail():
    quotes = [PricingService.price_order(D("25"), PaymentRail.USDT, D("5"), D("7.1")) for _ in range(50)]
    assert {q.cny_amount for q in quotes} == {D("177.50")}
    for q in quotes:
        nonce = q.usdt_amount - D("25")
        assert D("0.1000") <= nonce <= D("0.9999")


def test_nonce_range_and_precision():
    for _ in range(500):
        n = draw_nonce()
        assert D("0.1000") <= n <= D("0.9999")
        assert n == n.quantize(D("0.0001"))


def test_balance_rail_has_no_fee():
    quote = PricingService.price_order(D("8"), PaymentRail.BALANCE, D("3"), D("7"))
    assert quote == Quote(usdt_amount=D("8.0000"), cny_amount=D("56.00"), fee_amount=D("0.00"))


def _product(pid, price="10", stock=5, active=True):
    return Product(id=pid, name=f"p{pid}", price=D(price), stock=stock, kind="virtual", is_active=active)


def test_catalog_base_sums_line_items():
    products = {1: _product(1, "10"), 2: _product(2, "2.5")}
    base = PricingService.catalog_base([LineItem(1, 2), LineItem(2, 3)], products)
    assert base == D("27.5000")


@pytest.mark.parametrize("items, error", [
    ([LineItem(1, 0)], ValidationError),
    ([LineItem(1, -1)], ValidationError),
    ([LineItem(9, 1)], ValidationError),
    ([LineItem(2, 1)], ValidationError),
    ([LineItem(1, 6)], InsufficientStockError),
    ([LineItem(1, 3), LineItem(1, 3)], InsufficientStockError),
    ([], ValidationError),
])
def test_catalog_base_rejections(items, error):
    products = {1: _product(1), 2: _product(2, active=False)}
    with pytest.raises(error):
        PricingService.catalog_base(items, products)


def test_partial_balance_deduction_on_usdt_rail():
    quote = PricingService.price_order(D("10"), PaymentRail.USDT, D("0"), D("7.2"), nonce=D("0.4321"))
    new_quote, deducted = PricingService.apply_balance_deduction(
        quote, PaymentRail.USDT, D("5.0000"), D("10.4321"), D("10"), D("7.2"), D("0"),
    )
    assert deducted == D("5.0000")
    assert new_quote.usdt_amount == D("5.4321")
    assert new_quote.cny_amount == D("36.00")


def test_full_coverage_rejected_on_rail_order():
    quote = PricingService.price_order(D("10"), PaymentRail.USDT, D("0"), D("7.2"), nonce=D("0.4321"))
    with pytest.raises(ValidationError, match="cannot equal or exceed"):
        PricingService.apply_balance_deduction(
            quote, PaymentRail.USDT, D("50"), D("10.4321"), D("10"), D("7.2"), D("0"),
        )


def test_fiat_deduction_reprices_remaining_base():
    quote = PricingService.price_order(D("10"), PaymentRail.WECHAT, D("3"), D("7.2"))
    new_quote, deducted = PricingService.apply_balance_deduction(
        quote, PaymentRail.WECHAT, D("100"), D("4"), D("10"), D("7.2"), D("3"),
    )
    assert deducted == D("4.0000")
    assert new_quote.usdt_amount == D("6.0000")
    # 6 * 7.2 = 43.20，手续费 1.296 -> 1.30
    assert new_quote.fee_amount == D("1.30")
    assert new_quote.cny_amount == D("44.50")


def test_deduction_capped_by_balance_and_optional():
    quote = PricingService.price_order(D("10"), PaymentRail.ALIPAY, D("0"), D("7"))
    same, deducted = PricingService.apply_balance_deduction(quote, PaymentRail.ALIPAY, D("3"), None, D("10"), D("7"), D("0"))
    assert same == quote and deducted == 0

    _, deducted = PricingService.apply_balance_deduction(quote, PaymentRail.ALIPAY, D("3"), D("8"), D("10"), D("7"), D("0"))
    assert deducted == D("3.0000")

    with pytest.raises(ValidationError):
        PricingService.apply_balance_deduction(quote, PaymentRail.ALIPAY, D("3"), D("-1"), D("10"), D("7"), D("0"))


def test_balance_rail_requires_full_coverage():
    quote = PricingService.price_order(D("10"), PaymentRail.BALANCE, D("0"), D("7"))
    with pytest.raises(InsufficientFundsError):
        PricingService.apply_balance_deduction(quote, PaymentRail.BALANCE, D("9.9999"), None, D("10"), D("7"), D("0"))

    same, deducted = PricingService.apply_balance_deduction(quote, PaymentRail.BALANCE, D("10"), None, D("10"), D("7"), D("0"))
    assert same == quote
    assert deducted == D("10.0000")
