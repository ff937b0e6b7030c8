"""
# @Time    : 2025/11/16 02:30
# @Author  : Pedro
# @File    : order_service.py
# @Software: PyCharm

订单状态机
--------------------------------
pending ──► awaiting_review ──► paid ──► shipped（仅实物）
   │               │
   │               └──► pending（运营驳回凭证）
   └──► cancelled / closed（只能从 pending）

所有状态迁移都是条件更新（compare-and-set）：
    UPDATE orders SET status = :new WHERE order_no = :no AND status IN (...)
影响行数为 0 即说明已被别的请求处理过，直接视为 no-op，不会重复入账。
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.model.account import Account
from app.api.v1.model.order import Order, OrderItem
from app.api.v1.model.product import Product
from app.api.v1.services.config_service import RateFeeConfigProvider
from app.api.v1.services.ledger_service import LedgerService
from app.api.v1.services.pricing_service import LineItem, PricingService
from app.api.v1.services.referral_service import ReferralService
from app.config.settings_manager import get_current_settings
from app.core.db import as_utc, get_session_factory, transaction, utcnow
from app.core.enums import LedgerCategory, OrderKind, OrderStatus, PaymentRail, ProductKind
from app.core.exception import (
    Forbidden,
    InsufficientStockError,
    InvalidStateError,
    NotFound,
    ValidationError,
)
from app.extension.telegram.notifier import Notifier, get_notifier
from app.util.money import q_usdt, to_decimal
from app.util.order_number_generator import OrderNumberGenerator

PAYABLE = [s.value for s in OrderStatus.payable()]


@dataclass
class PaidEvent:
    """paid 迁移成功后，提交事务外需要做的后续动作"""
    order_no: str
    account_id: int
    kind: OrderKind
    rail: PaymentRail
    base_amount: Decimal
    usdt_amount: Decimal
    source: str
    overpayment: Decimal = Decimal(0)


class OrderService:

    def __init__(
            self,
            config_provider: Optional[RateFeeConfigProvider] = None,
            notifier: Optional[Notifier] = None,
            referral: Optional[ReferralService] = None,
            clock: Callable[[], datetime] = utcnow,
    ):
        self.config_provider = config_provider or RateFeeConfigProvider()
        self._notifier = notifier
        self.referral = referral or ReferralService(notifier=notifier)
        self.clock = clock
        self.expire_minutes = get_current_settings().order.expire_minutes

    @property
    def notifier(self) -> Notifier:
        return self._notifier or get_notifier()

    # ======================================================
    # 🛒 下单
    # ======================================================
    async def create(
            self,
            account_id: int,
            items: list[LineItem],
            rail: PaymentRail,
            shipping_info: Optional[dict] = None,
            use_balance: Optional[Decimal] = None,
    ) -> Order:
        config = await self.config_provider.get()
        now = self.clock()

        async with transaction() as session:
            account = await session.get(Account, account_id)
            if account is None:
                raise NotFound("账户不存在")

            ids = {i.product_id for i in items}
            rows = await session.execute(select(Product).where(Product.id.in_(ids)))
            products = {p.id: p for p in rows.scalars().all()}

            base = PricingService.catalog_base(items, products)
            needs_shipping = any(products[i.product_id].kind == ProductKind.PHYSICAL.value for i in items)
            if needs_shipping and not shipping_info:
                raise ValidationError("实物商品必须填写收货信息")

            quote = PricingService.price_order(base, rail, config.fee_percent, config.rate)
            balance = await LedgerService.balance_of(session, account_id)
            quote, deducted = PricingService.apply_balance_deduction(
                quote, rail, balance, use_balance, base, config.rate, config.fee_percent,
            )

            # 条件扣减库存，并发下只有一方能成功
            for item in items:
                result = await session.execute(
                    update(Product)
                    .where(Product.id == item.product_id, Product.stock >= item.quantity)
                    .values(stock=Product.stock - item.quantity)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise InsufficientStockError(f"库存不足: {products[item.product_id].name}")

            fully_paid = rail is PaymentRail.BALANCE
            order = Order(
                order_no=OrderNumberGenerator.generate(),
                account_id=account_id,
                kind=OrderKind.GOODS.value,
                description=", ".join(f"{products[i.product_id].name} x{i.quantity}" for i in items)[:500],
                rail=rail.value,
                status=OrderStatus.PAID.value if fully_paid else OrderStatus.PENDING.value,
                base_amount=base,
                usdt_amount=quote.usdt_amount,
                cny_amount=quote.cny_amount,
                fee_amount=quote.fee_amount,
                balance_deducted=deducted,
                snapshot_rate=config.rate,
                shipping_info=shipping_info if needs_shipping else None,
                create_time=now,
                expires_at=now + timedelta(minutes=self.expire_minutes),
                paid_at=now if fully_paid else None,
                items=[
                    OrderItem(
                        product_id=i.product_id,
                        name=products[i.product_id].name,
                        kind=products[i.product_id].kind,
                        quantity=i.quantity,
                        unit_price=products[i.product_id].price,
                        subtotal=q_usdt(to_decimal(products[i.product_id].price) * i.quantity),
                    )
                    for i in items
                ],
            )
            session.add(order)
            await session.flush()

            if deducted > 0:
                await LedgerService.apply(
                    session, account_id, -deducted, LedgerCategory.SPEND,
                    memo=f"订单 {order.order_no} 余额支付", reference=f"spend:{order.order_no}",
                )
            contact = account.contact

        logger.info(f"🧾 新订单 {order.order_no} rail={rail.value} usdt={order.usdt_amount} cny={order.cny_amount}")
        await self._safe_notify_operator(self._new_order_text(order, contact, config.fee_percent))

        if fully_paid:
            await self._after_paid(PaidEvent(
                order_no=order.order_no, account_id=account_id, kind=OrderKind.GOODS,
                rail=rail, base_amount=base, usdt_amount=order.usdt_amount, source="balance",
            ))
        return order

    async def create_topup(self, account_id: int, amount: Decimal, rail: PaymentRail) -> Order:
        """余额充值订单：无商品、不允许余额抵扣"""
        if rail is PaymentRail.BALANCE:
            raise ValidationError("充值不能使用余额支付")
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError("充值金额必须大于 0")

        config = await self.config_provider.get()
        now = self.clock()
        base = q_usdt(amount)
        quote = PricingService.price_order(base, rail, config.fee_percent, config.rate)

        async with transaction() as session:
            account = await session.get(Account, account_id)
            if account is None:
                raise NotFound("账户不存在")
            order = Order(
                order_no=OrderNumberGenerator.generate(),
                account_id=account_id,
                kind=OrderKind.TOPUP.value,
                description=f"余额充值 {base} USDT",
                rail=rail.value,
                status=OrderStatus.PENDING.value,
                base_amount=base,
                usdt_amount=quote.usdt_amount,
                cny_amount=quote.cny_amount,
                fee_amount=quote.fee_amount,
                balance_deducted=Decimal(0),
                snapshot_rate=config.rate,
                create_time=now,
                expires_at=now + timedelta(minutes=self.expire_minutes),
            )
            session.add(order)
            await session.flush()
            contact = account.contact

        logger.info(f"💳 充值订单 {order.order_no} rail={rail.value} usdt={order.usdt_amount}")
        await self._safe_notify_operator(self._new_order_text(order, contact, config.fee_percent))
        return order

    # ======================================================
    # 🔍 查询
    # ======================================================
    @staticmethod
    async def get(order_no: str, account_id: Optional[int] = None) -> Order:
        async with get_session_factory()() as session:
            order = await session.scalar(select(Order).where(Order.order_no == order_no))
        if order is None:
            raise NotFound("订单不存在")
        if account_id is not None and order.account_id != account_id:
            raise Forbidden("无权访问该订单")
        return order

    @staticmethod
    async def list_for_account(account_id: int, page: int = 1, size: int = 20) -> tuple[list[Order], int]:
        return await Order.paginate(
            page=page, size=size, filters={"account_id": account_id}, order_by="id", sort="desc",
        )

    # ======================================================
    # 🔁 更换支付通道（按当前汇率重新定价）
    # ======================================================
    async def change_rail(self, order_no: str, account_id: int, new_rail: PaymentRail) -> Order:
        if new_rail is PaymentRail.BALANCE:
            raise ValidationError("不能切换为余额支付")

        config = await self.config_provider.get()
        now = self.clock()

        async with transaction() as session:
            order = await self._load_owned(session, order_no, account_id)
            self._ensure_open(order, now)

            base = to_decimal(order.base_amount)
            deducted = to_decimal(order.balance_deducted)
            quote = PricingService.price_order(base, new_rail, config.fee_percent, config.rate)
            if deducted > 0:
                quote, _ = PricingService.apply_balance_deduction(
                    quote, new_rail, deducted, deducted, base, config.rate, config.fee_percent,
                )

            result = await session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == OrderStatus.PENDING.value)
                .values(
                    rail=new_rail.value,
                    usdt_amount=quote.usdt_amount,
                    cny_amount=quote.cny_amount,
                    fee_amount=quote.fee_amount,
                    snapshot_rate=config.rate,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidStateError("订单状态已变化，无法更换支付方式")
            await session.refresh(order)

        logger.info(f"🔁 订单 {order_no} 切换支付方式 -> {new_rail.value}")
        return order

    # ======================================================
    # 🙋 买家操作
    # ======================================================
    async def confirm_by_buyer(self, order_no: str, account_id: int) -> Order:
        """买家声明已付款：只记录时间并提醒运营，不改变状态"""
        async with transaction() as session:
            order = await self._load_owned(session, order_no, account_id)
            if order.status not in PAYABLE:
                raise InvalidStateError("订单当前状态无需确认付款")
            order.buyer_confirmed_at = self.clock()

        await self._safe_notify_operator(
            f"🔔 **买家已确认付款**\n单号: `{order.order_no}`\n支付: {PaymentRail(order.rail).label()}\n请核对到账"
        )
        return order

    async def upload_evidence(self, order_no: str, account_id: int, evidence_ref: str) -> Order:
        if not evidence_ref or not evidence_ref.strip():
            raise ValidationError("付款凭证不能为空")
        now = self.clock()

        async with transaction() as session:
            order = await self._load_owned(session, order_no, account_id)
            if not PaymentRail(order.rail).is_fiat:
                raise ValidationError("只有支付宝 / 微信订单需要上传凭证")
            self._ensure_open(order, now)

            result = await session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == OrderStatus.PENDING.value)
                .values(status=OrderStatus.AWAITING_REVIEW.value, evidence_ref=evidence_ref.strip())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidStateError("订单状态已变化")
            await session.refresh(order)

        await self._safe_notify_operator(
            f"🧾 **付款凭证待审核**\n单号: `{order.order_no}`\n金额: ¥{order.cny_amount}\n"
            f"凭证: {order.evidence_ref}\n/confirm {order.order_no}  /reject {order.order_no}"
        )
        return order

    async def cancel(self, order_no: str, account_id: Optional[int] = None, by_operator: bool = False) -> bool:
        """
        买家取消 -> cancelled，运营关闭 -> closed
        只能从 pending 发起；归还库存并退回已抵扣余额
        返回 False 表示订单已处于目标状态（重复操作）
        """
        target = OrderStatus.CLOSED if by_operator else OrderStatus.CANCELLED

        async with transaction() as session:
            if account_id is not None:
                order = await self._load_owned(session, order_no, account_id)
            else:
                order = await self._load(session, order_no)

            if order.status == target.value:
                return False
            if order.status != OrderStatus.PENDING.value:
                raise InvalidStateError("只有待支付订单可以取消")

            result = await session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == OrderStatus.PENDING.value)
                .values(status=target.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False

            for item in order.items:
                await session.execute(
                    update(Product)
                    .where(Product.id == item.product_id)
                    .values(stock=Product.stock + item.quantity)
                    .execution_options(synchronize_session=False)
                )

            deducted = to_decimal(order.balance_deducted or 0)
            if deducted > 0:
                await LedgerService.apply(
                    session, order.account_id, deducted, LedgerCategory.ORDER_REFUND,
                    memo=f"订单 {order.order_no} 取消退回余额", reference=f"refund:{order.order_no}",
                )

        logger.info(f"🚫 订单 {order_no} -> {target.value}")
        return True

    # ======================================================
    # ✅ 标记已支付（对账任务 / 运营确认共用）
    # ======================================================
    async def mark_paid(
            self,
            order_no: str,
            *,
            source: str,
            enforce_expiry: bool = True,
            tx_id: Optional[str] = None,
            overpayment: Optional[Decimal] = None,
    ) -> bool:
        """
        幂等：只有 pending / awaiting_review 且（需要时）未过期的订单会被迁移，
        其余情况影响行数为 0，直接返回 False，不做任何入账
        """
        now = self.clock()
        values = {"status": OrderStatus.PAID.value, "paid_at": now}
        if tx_id:
            values["payment_tx_id"] = tx_id

        async with transaction() as session:
            stmt = (
                update(Order)
                .where(Order.order_no == order_no, Order.status.in_(PAYABLE))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if enforce_expiry:
                stmt = stmt.where(Order.expires_at > now)
            result = await session.execute(stmt)
            if result.rowcount == 0:
                return False

            order = await self._load(session, order_no)
            event = PaidEvent(
                order_no=order.order_no,
                account_id=order.account_id,
                kind=OrderKind(order.kind),
                rail=PaymentRail(order.rail),
                base_amount=to_decimal(order.base_amount),
                usdt_amount=to_decimal(order.usdt_amount),
                source=source,
            )

            if event.kind is OrderKind.TOPUP:
                await LedgerService.apply(
                    session, order.account_id, event.usdt_amount, LedgerCategory.TOPUP,
                    memo=f"充值到账 {order.order_no}", reference=f"topup:{order.order_no}",
                )
            if overpayment is not None and overpayment > 0:
                event.overpayment = q_usdt(overpayment)
                if event.overpayment > 0:
                    await LedgerService.apply(
                        session, order.account_id, event.overpayment, LedgerCategory.TOPUP,
                        memo=f"订单 {order.order_no} 多付 {event.overpayment} USDT 转入余额",
                        reference=f"overpay:{order.order_no}",
                    )

        logger.info(f"✅ 订单 {order_no} 已支付 source={source} tx={tx_id or '-'}")
        await self._after_paid(event)
        return True

    async def reset_to_pending(self, order_no: str) -> bool:
        """运营驳回凭证：awaiting_review -> pending，清除凭证，不动余额"""
        async with transaction() as session:
            await self._load(session, order_no)
            result = await session.execute(
                update(Order)
                .where(Order.order_no == order_no, Order.status == OrderStatus.AWAITING_REVIEW.value)
                .values(status=OrderStatus.PENDING.value, evidence_ref=None)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    async def ship(self, order_no: str, tracking_number: str) -> bool:
        """已支付实物订单发货；已发货订单重复调用只更新单号"""
        if not tracking_number or not tracking_number.strip():
            raise ValidationError("物流单号不能为空")
        tracking_number = tracking_number.strip()

        async with transaction() as session:
            order = await self._load(session, order_no)
            if not order.requires_shipping:
                raise InvalidStateError("虚拟商品订单无需发货")
            if order.status == OrderStatus.SHIPPED.value:
                changed = order.tracking_number != tracking_number
                order.tracking_number = tracking_number
                return changed

            result = await session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == OrderStatus.PAID.value)
                .values(status=OrderStatus.SHIPPED.value, tracking_number=tracking_number)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidStateError("只有已支付订单可以发货")
            account_id = order.account_id

        await self._safe_notify_account(account_id, {
            "type": "order_shipped", "order_no": order_no, "tracking_number": tracking_number,
        })
        return True

    async def set_payment_code(self, order_no: str, payment_code_ref: str) -> Order:
        """运营为法币订单上传收款码"""
        if not payment_code_ref or not payment_code_ref.strip():
            raise ValidationError("收款码不能为空")
        async with transaction() as session:
            order = await self._load(session, order_no)
            if not PaymentRail(order.rail).is_fiat:
                raise ValidationError("只有支付宝 / 微信订单需要收款码")
            if order.status not in PAYABLE:
                raise InvalidStateError("订单已结束")
            order.payment_code_ref = payment_code_ref.strip()

        await self._safe_notify_account(order.account_id, {
            "type": "payment_code", "order_no": order_no, "payment_code_ref": order.payment_code_ref,
        })
        return order

    # ======================================================
    # 🧩 内部工具
    # ======================================================
    @staticmethod
    async def _load(session: AsyncSession, order_no: str) -> Order:
        order = await session.scalar(select(Order).where(Order.order_no == order_no))
        if order is None:
            raise NotFound("订单不存在")
        return order

    async def _load_owned(self, session: AsyncSession, order_no: str, account_id: int) -> Order:
        order = await self._load(session, order_no)
        if order.account_id != account_id:
            raise Forbidden("无权操作该订单")
        return order

    @staticmethod
    def _ensure_open(order: Order, now: datetime):
        if order.status != OrderStatus.PENDING.value:
            raise InvalidStateError("只有待支付订单可以进行该操作")
        if as_utc(order.expires_at) <= now:
            raise InvalidStateError("订单已过期")

    async def _after_paid(self, event: PaidEvent):
        """事务提交后：返佣 + 通知；这里的失败都不影响已支付状态"""
        amount = event.usdt_amount if event.kind is OrderKind.TOPUP else event.base_amount
        await self.referral.apply_referral_bonus(event.account_id, amount, event.kind, event.order_no)

        text = (
            f"✅ **{'充值' if event.kind is OrderKind.TOPUP else '订单'}已支付**\n"
            f"单号: `{event.order_no}`\n金额: {event.usdt_amount} USDT\n来源: {event.source}"
        )
        if event.overpayment > 0:
            text += f"\n多付 {event.overpayment} USDT 已转入余额"
        await self._safe_notify_operator(text)
        await self._safe_notify_account(event.account_id, {
            "type": "order_paid", "order_no": event.order_no, "kind": event.kind.value,
        })

    @staticmethod
    def _new_order_text(order: Order, contact: str, fee_percent: Decimal) -> str:
        title = "💳 **新充值订单**" if order.kind == OrderKind.TOPUP.value else "💰 **新订单**"
        rail = PaymentRail(order.rail)
        text = (
            f"{title}\n单号: `{order.order_no}`\n商品: {order.description}\n"
            f"用户: {contact}\n支付: {rail.label()}"
        )
        if rail is PaymentRail.USDT:
            text += f"\n需付: `{order.usdt_amount}` USDT"
        elif rail is PaymentRail.BALANCE:
            text += f"\n余额已扣: {order.balance_deducted} USDT"
        else:
            text += f"\n需付: ¥{order.cny_amount} (含手续费{fee_percent}%)"

        if order.shipping_info:
            info = order.shipping_info
            text += (
                f"\n\n📦 **发货信息**\n收件人: {info.get('name', '')}\n"
                f"电话: {info.get('tel', '')}\n地址: {info.get('addr', '')}"
            )
        return text

    async def _safe_notify_operator(self, text: str):
        try:
            await self.notifier.notify_operator(text)
        except Exception as e:
            logger.warning(f"⚠️ 运营通知失败: {e}")

    async def _safe_notify_account(self, account_id: int, payload: dict):
        try:
            await self.notifier.notify_account(account_id, payload)
        except Exception as e:
            logger.warning(f"⚠️ 买家通知失败 account={account_id}: {e}")


def order_to_dict(order: Order) -> dict:
    """订单 + 明细（Decimal 交给 serialize 统一转字符串）"""
    data = {c.key: getattr(order, c.key) for c in order.__table__.columns}
    data["items"] = [
        {c.key: getattr(i, c.key) for c in i.__table__.columns}
        for i in order.items
    ]
    data["remaining_usdt"] = to_decimal(order.usdt_amount) if order.rail != PaymentRail.BALANCE.value else Decimal(0)
    return data
