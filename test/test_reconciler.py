"""
# @Time    : 2025/11/16 16:05
# @Author  : Pedro
# @File    : test_reconciler.py
# @Software: PyCharm
"""
import asyncio
from datetime import timedelta
from decimal import Decimal

from app.api.cms.services.operator_service import OperatorService
from app.api.v1.services.ledger_service import LedgerService
from app.api.v1.services.pricing_service import LineItem
from app.api.v1.worker.payment_reconciler import PaymentReconciler, ReconcilerTask
from app.core.db import transaction, utcnow
from app.core.enums import LedgerCategory, OrderStatus, PaymentRail

D = Decimal


def _reconciler(source, order_service, config_provider):
    return PaymentReconciler(source, config_provider=config_provider, order_service=order_service)


async def _usdt_order(order_service, make_account, make_product):
    account = await make_account()
    product = await make_product(price="10.00")
    order = await order_service.create(account.id, [LineItem(product.id, 1)], PaymentRail.USDT)
    return account, order


async def test_no_pending_orders_skips_fetch(order_service, config_provider, make_source):
    source = make_source()
    report = await _reconciler(source, order_service, config_provider).run_once()
    assert report.pending == 0
    assert source.calls == 0


async def test_matching_transfer_marks_paid(order_service, config_provider, make_account, make_product,
                                            make_source, make_transfer, notifier):
    _, order = await _usdt_order(order_service, make_account, make_product)
    later = utcnow() + timedelta(seconds=5)
    source = make_source([
        make_transfer("tx-other", "3.1234", later),
        make_transfer("tx-hit", str(order.usdt_amount), later),
    ])

    report = await _reconciler(source, order_service, config_provider).run_once()

    assert (report.pending, report.matched, report.credited) == (1, 1, 1)
    paid = await order_service.get(order.order_no)
    assert paid.status == OrderStatus.PAID.value
    assert paid.payment_tx_id == "tx-hit"
    assert any("已支付" in text for text in notifier.operator)


async def test_source_failure_credits_nothing(order_service, config_provider, make_account, make_product,
                                              make_source):
    _, order = await _usdt_order(order_service, make_account, make_product)
    report = await _reconciler(make_source(fail=True), order_service, config_provider).run_once()

    assert report.source_failed is True
    assert report.credited == 0
    assert (await order_service.get(order.order_no)).status == OrderStatus.PENDING.value


async def test_transfer_before_order_creation_ignored(order_service, config_provider, make_account,
                                                      make_product, make_source, make_transfer):
    _, order = await _usdt_order(order_service, make_account, make_product)
    stale = make_transfer("tx-old", str(order.usdt_amount), utcnow() - timedelta(hours=1))

    report = await _reconciler(make_source([stale]), order_service, config_provider).run_once()

    assert report.matched == 0
    assert (await order_service.get(order.order_no)).status == OrderStatus.PENDING.value


async def test_expired_order_not_reconciled(order_service, config_provider, make_account, make_product,
                                            make_source, make_transfer, expire_order):
    _, order = await _usdt_order(order_service, make_account, make_product)
    await expire_order(order.order_no)
    source = make_source([make_transfer("tx-late", str(order.usdt_amount), utcnow())])

    report = await _reconciler(source, order_service, config_provider).run_once()

    assert report.pending == 0
    assert source.calls == 0
    assert (await order_service.get(order.order_no)).status == OrderStatus.PENDING.value


async def test_one_transfer_pays_one_order(order_service, config_provider, make_account, make_product,
                                           make_source, make_transfer):
    _, first = await _usdt_order(order_service, make_account, make_product)
    _, second = await _usdt_order(order_service, make_account, make_product)
    amount = str(first.usdt_amount)

    reconciler = _reconciler(
        make_source([make_transfer("tx-1", amount, utcnow() + timedelta(seconds=5))]),
        order_service, config_provider,
    )
    report = await reconciler.run_once()
    assert report.credited == 1

    # 下一轮同一笔转账不会再次确认别的订单
    await reconciler.run_once()
    assert (await order_service.get(first.order_no)).status == OrderStatus.PAID.value
    assert (await order_service.get(second.order_no)).status == OrderStatus.PENDING.value


async def test_usdt_topup_credits_balance(order_service, config_provider, make_account, make_source,
                                          make_transfer):
    account = await make_account()
    order = await order_service.create_topup(account.id, D("25"), PaymentRail.USDT)
    source = make_source([make_transfer("tx-topup", str(order.usdt_amount), utcnow() + timedelta(seconds=1))])
    reconciler = _reconciler(source, order_service, config_provider)

    await reconciler.run_once()
    await reconciler.run_once()

    async with transaction() as session:
        assert await LedgerService.balance_of(session, account.id) == order.usdt_amount


async def test_reconciler_task_start_stop(order_service, config_provider, make_source):
    source = make_source()
    task = ReconcilerTask(_reconciler(source, order_service, config_provider), interval=0.01)

    task.start()
    assert task.running
    await asyncio.sleep(0.05)
    await task.stop()

    assert not task.running
    # 没有待支付订单，始终不请求外部接口
    assert source.calls == 0


async def test_reconciler_racing_operator_credits_topup_once(order_service, config_provider, make_account,
                                                             make_source, make_transfer, notifier):
    account = await make_account()
    order = await order_service.create_topup(account.id, D("30"), PaymentRail.USDT)
    source = make_source([make_transfer("tx-race", str(order.usdt_amount), utcnow() + timedelta(seconds=1))])
    reconciler = _reconciler(source, order_service, config_provider)
    operator = OperatorService(order_service=order_service, config_provider=config_provider, notifier=notifier)

    results = await asyncio.gather(
        reconciler.run_once(),
        operator.confirm_payment(order.order_no),
        reconciler.run_once(),
        operator.confirm_payment(order.order_no),
    )

    operator_changed = [r.changed for r in results[1::2]]
    reconciler_credited = sum(r.credited for r in results[0::2])
    assert operator_changed.count(True) + reconciler_credited == 1

    topups = [e for e in await LedgerService.history(account.id) if e.category == LedgerCategory.TOPUP.value]
    assert len(topups) == 1
    async with transaction() as session:
        assert await LedgerService.balance_of(session, account.id) == order.usdt_amount
    assert (await order_service.get(order.order_no)).status == OrderStatus.PAID.value
