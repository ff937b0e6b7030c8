"""
# @Time    : 2025/11/16 15:00
# @Author  : Pedro
# @File    : conftest.py
# @Software: PyCharm
"""
import os

os.environ["APP_ENV"] = "test"

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import update  # noqa: E402

from app.api.v1.model import Order, Product  # noqa: E402
from app.api.v1.services.account_service import AccountService  # noqa: E402
from app.api.v1.services.config_service import RateFeeConfigProvider  # noqa: E402
from app.api.v1.services.ledger_service import LedgerService  # noqa: E402
from app.api.v1.services.order_service import OrderService  # noqa: E402
from app.api.v1.services.registry import reset_services  # noqa: E402
from app.core.db import configure_engine, create_all, dispose_engine, transaction  # noqa: E402
from app.core.enums import LedgerCategory, ProductKind  # noqa: E402
from app.extension.telegram.notifier import Notifier, set_notifier  # noqa: E402
from app.extension.tron.explorer import EvidenceSource, Transfer  # noqa: E402
from app.core.exception import ExternalSourceError  # noqa: E402

TEST_ADDRESS = "TTestReceivingAddress00000000000000"


class RecordingNotifier(Notifier):
    def __init__(self):
        self.operator: list[str] = []
        self.accounts: list[tuple[int, dict[str, Any]]] = []

    async def notify_operator(self, text: str) -> None:
        self.operator.append(text)

    async def notify_account(self, account_id: int, payload: dict[str, Any]) -> None:
        self.accounts.append((account_id, payload))


class FakeEvidenceSource(EvidenceSource):
    def __init__(self, transfers: Optional[list[Transfer]] = None, fail: bool = False):
        self.transfers = transfers or []
        self.fail = fail
        self.calls = 0

    async def fetch_recent_transfers(self, address: str) -> list[Transfer]:
        self.calls += 1
        if self.fail:
            raise ExternalSourceError("TronGrid 限流", status_code=429)
        return list(self.transfers)


@pytest.fixture(autouse=True)
async def db(tmp_path):
    configure_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await create_all()
    reset_services()
    yield
    reset_services()
    await dispose_engine()


@pytest.fixture(autouse=True)
def notifier():
    recorder = RecordingNotifier()
    set_notifier(recorder)
    yield recorder
    set_notifier(None)


@pytest.fixture
def config_provider():
    return RateFeeConfigProvider()


@pytest.fixture
def order_service(config_provider, notifier):
    return OrderService(config_provider=config_provider, notifier=notifier)


@pytest.fixture
def make_account():
    counter = {"n": 0}

    async def _make(balance: str = "0", referral_code: Optional[str] = None):
        counter["n"] += 1
        account = await AccountService.register(f"buyer{counter['n']}@example.com", "secret123", referral_code)
        if Decimal(balance) > 0:
            async with transaction() as session:
                await LedgerService.apply(
                    session, account.id, Decimal(balance), LedgerCategory.OPERATOR_ADJUSTMENT, memo="初始余额",
                )
        return account

    return _make


@pytest.fixture
def make_product():
    async def _make(price: str = "10.00", stock: int = 10, kind: ProductKind = ProductKind.VIRTUAL, name="测试商品"):
        return await Product.create(name=name, price=Decimal(price), stock=stock, kind=kind.value, is_active=True)

    return _make


@pytest.fixture
def expire_order():
    """把订单的过期时间拨到过去"""
    async def _expire(order_no: str):
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        async with transaction() as session:
            await session.execute(
                update(Order).where(Order.order_no == order_no).values(expires_at=past)
            )

    return _expire


@pytest.fixture
def make_transfer():
    def _make(tx_id: str, amount: str, at: datetime) -> Transfer:
        return Transfer(tx_id=tx_id, amount=Decimal(amount), timestamp=at, to_address=TEST_ADDRESS)

    return _make


@pytest.fixture
def make_source():
    def _make(transfers: Optional[list[Transfer]] = None, fail: bool = False) -> FakeEvidenceSource:
        return FakeEvidenceSource(transfers, fail)

    return _make
