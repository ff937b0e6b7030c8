"""
# @Time    : 2025/11/16 17:20
# @Author  : Pedro
# @File    : test_explorer.py
# @Software: PyCharm
"""
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from app.core.exception import ExternalSourceError
from app.extension.telegram.notifier import TelegramNotifier
from app.extension.tron.explorer import TronGridClient

ADDRESS = "TTestReceivingAddress00000000000000"


def _client(handler) -> TronGridClient:
    return TronGridClient(transport=httpx.MockTransport(handler))


async def test_parses_trc20_transfers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json={
            "success": True,
            "data": [
                {
                    "transaction_id": "abc",
                    "from": "TSender",
                    "to": ADDRESS,
                    "value": "10432100",
                    "block_timestamp": 1731700000000,
                    "token_info": {"decimals": 6},
                },
                {"transaction_id": "other", "to": "TSomeoneElse", "value": "1", "block_timestamp": 1},
                {"transaction_id": "broken", "to": ADDRESS},
            ],
        })

    transfers = await _client(handler).fetch_recent_transfers(ADDRESS)

    assert f"/v1/accounts/{ADDRESS}/transactions/trc20" in seen["url"]
    assert "only_to=true" in seen["url"]
    assert len(transfers) == 1
    assert transfers[0].tx_id == "abc"
    assert transfers[0].amount == Decimal("10.4321")
    assert transfers[0].timestamp == datetime.fromtimestamp(1731700000, tz=timezone.utc)


@pytest.mark.parametrize("response", [
    httpx.Response(429, json={}),
    httpx.Response(500, text="oops"),
    httpx.Response(200, text="<html>"),
    httpx.Response(200, json={"success": False, "error": "bad"}),
])
async def test_failures_raise_external_error(response):
    with pytest.raises(ExternalSourceError):
        await _client(lambda request: response).fetch_recent_transfers(ADDRESS)


async def test_network_error_raises_external_error():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(ExternalSourceError):
        await _client(handler).fetch_recent_transfers(ADDRESS)


async def test_telegram_sends_markdown_message():
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json={"ok": True})

    notifier = TelegramNotifier(bot_token="T0KEN", chat_id="-100", transport=httpx.MockTransport(handler))
    await notifier.notify_operator("💰 **新订单**")

    assert sent[0].url.path == "/botT0KEN/sendMessage"
    assert b'"parse_mode":"Markdown"' in sent[0].content.replace(b" ", b"")


async def test_telegram_failure_is_swallowed():
    notifier = TelegramNotifier(
        bot_token="T0KEN", chat_id="-100",
        transport=httpx.MockTransport(lambda request: httpx.Response(502)),
    )
    await notifier.notify_operator("hello")
