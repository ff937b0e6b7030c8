"""
# @Time    : 2025/10/28 21:49
# @Author  : Pedro
# @File    : payment_reconciler.py
# @Software: PyCharm

USDT 到账对账任务
--------------------------------
每轮：
1️⃣ 取出未过期的 pending USDT 订单（没有就不请求浏览器）
2️⃣ 拉取收款地址最近的 TRC-20 转入记录（失败则整轮跳过，不做任何入账）
3️⃣ 金额差 < epsilon 且转账时间 >= 下单时间，先到先得，同一笔转账本轮只用一次
4️⃣ 通过 OrderService.mark_paid 条件更新为 paid；多付部分转入余额
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from loguru import logger
from sqlalchemy import select

from app.api.v1.model.order import Order
from app.api.v1.services.config_service import RateFeeConfigProvider
from app.api.v1.services.order_service import OrderService
from app.config.settings_manager import get_current_settings
from app.core.db import as_utc, get_session_factory, utcnow
from app.core.enums import OrderStatus, PaymentRail
from app.core.exception import ExternalSourceError
from app.extension.telegram.notifier import Notifier
from app.extension.tron.explorer import EvidenceSource, Transfer
from app.util.money import to_decimal


@dataclass
class ReconcileReport:
    pending: int = 0
    fetched: int = 0
    matched: int = 0
    credited: int = 0
    source_failed: bool = False


class PaymentReconciler:

    def __init__(
            self,
            evidence_source: EvidenceSource,
            config_provider: Optional[RateFeeConfigProvider] = None,
            notifier: Optional[Notifier] = None,
            clock: Callable[[], datetime] = utcnow,
            order_service: Optional[OrderService] = None,
    ):
        self.evidence_source = evidence_source
        self.config_provider = config_provider or RateFeeConfigProvider()
        self.clock = clock
        self.epsilon = to_decimal(get_current_settings().reconciler.epsilon)
        self.orders = order_service or OrderService(
            config_provider=self.config_provider, notifier=notifier, clock=clock,
        )

    async def _pending_orders(self, now: datetime) -> list[Order]:
        async with get_session_factory()() as session:
            rows = await session.execute(
                select(Order)
                .where(
                    Order.status == OrderStatus.PENDING.value,
                    Order.rail == PaymentRail.USDT.value,
                    Order.expires_at > now,
                )
                .order_by(Order.id.asc())
            )
            return list(rows.scalars().all())

    def _find_match(self, order: Order, transfers: list[Transfer], used: set[str]) -> Optional[Transfer]:
        expected = to_decimal(order.usdt_amount)
        created = as_utc(order.create_time)
        for tx in transfers:
            if tx.tx_id in used:
                continue
            if abs(tx.amount - expected) < self.epsilon and tx.timestamp >= created:
                return tx
        return None

    async def run_once(self) -> ReconcileReport:
        report = ReconcileReport()
        now = self.clock()

        pending = await self._pending_orders(now)
        report.pending = len(pending)
        if not pending:
            return report

        config = await self.config_provider.get()
        if not config.receiving_address:
            logger.warning("⚠️ 未配置收款地址，跳过本轮对账")
            return report

        try:
            transfers = await self.evidence_source.fetch_recent_transfers(config.receiving_address)
        except ExternalSourceError as e:
            logger.warning(f"⚠️ 拉取链上转账失败，本轮不做任何确认: {e.msg}")
            report.source_failed = True
            return report
        report.fetched = len(transfers)

        used: set[str] = set()
        for order in pending:
            tx = self._find_match(order, transfers, used)
            if tx is None:
                continue
            used.add(tx.tx_id)
            report.matched += 1

            owed = to_decimal(order.usdt_amount) - to_decimal(order.fee_amount)
            overpayment = tx.amount - owed
            try:
                paid = await self.orders.mark_paid(
                    order.order_no,
                    source=f"tron:{tx.tx_id}",
                    enforce_expiry=True,
                    tx_id=tx.tx_id,
                    overpayment=overpayment if overpayment > self.epsilon else None,
                )
            except Exception as e:
                # 单个订单失败不影响其它订单（例如该转账已被其它订单占用）
                logger.error(f"❌ 订单 {order.order_no} 入账失败 tx={tx.tx_id}: {e}")
                continue

            if paid:
                report.credited += 1
                logger.info(f"💰 USDT 到账 {order.order_no} amount={tx.amount} tx={tx.tx_id}")

        logger.debug(f"🔄 对账完成: {report}")
        return report


class ReconcilerTask:
    """由应用生命周期持有的周期任务"""

    def __init__(self, reconciler: PaymentReconciler, interval: Optional[float] = None):
        self.reconciler = reconciler
        self.interval = interval or get_current_settings().reconciler.interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name="payment-reconciler")
        logger.info(f"📡 对账任务已启动，间隔 {self.interval}s")

    async def stop(self):
        if self._task is None:
            return
        self._stopping.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("🛑 对账任务已停止")

    async def _loop(self):
        while not self._stopping.is_set():
            try:
                await self.reconciler.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"❌ 对账任务异常，下轮重试: {e}")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
