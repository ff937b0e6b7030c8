"""
# @Time    : 2025/11/16 17:40
# @Author  : Pedro
# @File    : test_api.py
# @Software: PyCharm
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import jwt
import pytest

from app import create_app

ADMIN = {"Authorization": "Bearer test-admin-token"}


@pytest.fixture
async def client():
    # 表结构由 db fixture 建好，这里沿用同一个引擎
    app = create_app(engine_configured=True)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def _register(client, contact="alice@example.com", referral_code=None):
    resp = await client.post("/v1/account/register", json={
        "contact": contact, "password": "secret123", "referral_code": referral_code,
    })
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def _login(client, contact="alice@example.com"):
    resp = await client.post("/v1/account/login", json={"contact": contact, "password": "secret123"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


async def _product(client, price="10.00", stock=2, name="会员月卡"):
    resp = await client.post("/cms/admin/product", headers=ADMIN, json={"name": name, "price": price, "stock": stock})
    return resp.json()["data"]


async def test_register_and_login(client):
    account = await _register(client)
    assert account["balance"] == "0"
    assert len(account["referral_code"]) == 8

    ok = await client.post("/v1/account/login", json={"contact": "alice@example.com", "password": "secret123"})
    data = ok.json()["data"]
    assert data["account"]["id"] == account["id"]
    assert data["token_type"] == "bearer"

    profile = await client.get("/v1/account/profile", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert profile.json()["data"]["contact"] == "alice@example.com"

    bad = await client.post("/v1/account/login", json={"contact": "alice@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json()["error_code"] == 1003


async def test_public_config(client):
    body = (await client.get("/v1/public/config")).json()
    assert body["code"] == 0
    assert body["data"]["rate"] == "7.0"
    assert body["data"]["wallet"] == "TTestReceivingAddress00000000000000"


async def test_order_flow_through_api(client):
    await _register(client)
    buyer = await _login(client)
    product = await _product(client)

    created = await client.post("/v1/order/create", headers=buyer, json={
        "product_id": product["id"], "quantity": 1, "rail": "USDT",
    })
    assert created.status_code == 200, created.text
    order = created.json()["data"]
    assert order["status"] == "pending"
    assert order["pay_target"] == {"wallet": "TTestReceivingAddress00000000000000"}

    detail = (await client.get(f"/v1/order/{order['order_no']}", headers=buyer)).json()["data"]
    assert detail["items"][0]["name"] == "会员月卡"

    page = (await client.get("/v1/order/list", headers=buyer)).json()
    assert page["data"]["total"] == 1

    confirm = await client.post("/cms/admin/payment/confirm", headers=ADMIN, json={"order_no": order["order_no"]})
    assert confirm.json()["data"]["changed"] is True
    again = await client.post("/cms/admin/payment/confirm", headers=ADMIN, json={"order_no": order["order_no"]})
    assert again.json()["data"]["changed"] is False


async def test_buyer_routes_require_token(client):
    victim = await _register(client)
    await client.post("/cms/admin/account/adjust", headers=ADMIN, json={
        "account_id": victim["id"], "amount": "100", "memo": "充值",
    })

    stolen = await client.post("/v1/withdrawal/create", json={
        "account_id": victim["id"], "amount": "50", "rail": "USDT", "destination": "Tattacker",
    })
    assert stolen.status_code == 401
    assert (await client.get("/v1/ledger/history")).status_code == 401
    assert (await client.get("/v1/order/list")).status_code == 401

    forged = {"Authorization": "Bearer not-a-jwt"}
    assert (await client.get("/v1/ledger/history", headers=forged)).status_code == 401

    expired = jwt.encode(
        {"uid": victim["id"], "type": "access", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        "test-jwt-secret-0123456789abcdef0123456789", algorithm="HS256",
    )
    resp = await client.get("/v1/ledger/history", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401

    wrong_key = jwt.encode(
        {"uid": victim["id"], "type": "access"}, "someone-else-0123456789abcdef0123456789", algorithm="HS256",
    )
    resp = await client.get("/v1/ledger/history", headers={"Authorization": f"Bearer {wrong_key}"})
    assert resp.status_code == 401

    profile = (await client.get("/v1/account/profile", headers=await _login(client))).json()["data"]
    assert Decimal(profile["balance"]) == Decimal("100")


async def test_token_acts_only_for_its_own_account(client):
    victim = await _register(client, "victim@example.com")
    await _register(client, "mallory@example.com")
    victim_auth = await _login(client, "victim@example.com")
    mallory = await _login(client, "mallory@example.com")
    await client.post("/cms/admin/account/adjust", headers=ADMIN, json={
        "account_id": victim["id"], "amount": "100", "memo": "充值",
    })
    product = await _product(client, stock=5)
    order = (await client.post("/v1/order/create", headers=victim_auth, json={
        "product_id": product["id"], "rail": "ALIPAY",
    })).json()["data"]

    assert (await client.get(f"/v1/order/{order['order_no']}", headers=mallory)).status_code == 403
    cancel = await client.post("/v1/order/cancel", headers=mallory, json={
        "order_no": order["order_no"], "account_id": victim["id"],
    })
    assert cancel.status_code == 403

    # 请求体里的 account_id 被忽略，只会从 token 对应账户扣款
    withdraw = await client.post("/v1/withdrawal/create", headers=mallory, json={
        "account_id": victim["id"], "amount": "50", "rail": "USDT", "destination": "Tattacker",
    })
    assert withdraw.status_code == 400
    assert withdraw.json()["error_code"] == 1101

    assert (await client.get("/v1/ledger/history", headers=mallory)).json()["data"] == []
    victim_history = (await client.get("/v1/ledger/history", headers=victim_auth)).json()["data"]
    assert [e["category"] for e in victim_history] == ["operator_adjustment"]
    assert (await client.get(f"/v1/order/{order['order_no']}", headers=victim_auth)).status_code == 200


async def test_error_envelope(client):
    await _register(client)
    buyer = await _login(client)

    missing = await client.get("/v1/order/NOPE", headers=buyer)
    assert missing.status_code == 404
    assert missing.json()["msg"] == "订单不存在"
    assert missing.json()["request"] == "GET /v1/order/NOPE"

    product = await _product(client, price="5", stock=1, name="限量款")
    short = await client.post("/v1/order/create", headers=buyer, json={
        "product_id": product["id"], "quantity": 2, "rail": "ALIPAY",
    })
    assert short.status_code == 400
    assert short.json()["error_code"] == 1102

    invalid = await client.post("/v1/order/create", headers=buyer, json={"rail": "PAYPAL"})
    assert invalid.status_code == 422

    created = (await client.post("/v1/order/create", headers=buyer, json={
        "product_id": product["id"], "rail": "ALIPAY",
    })).json()["data"]
    await client.post("/v1/order/cancel", headers=buyer, json={"order_no": created["order_no"]})
    conflict = await client.post("/cms/admin/payment/confirm", headers=ADMIN, json={"order_no": created["order_no"]})
    assert conflict.status_code == 409


async def test_admin_requires_token(client):
    assert (await client.get("/cms/admin/product")).status_code == 401
    assert (await client.get("/cms/admin/product", headers={"Authorization": "Bearer nope"})).status_code == 403
    assert (await client.get("/cms/admin/product", headers=ADMIN)).status_code == 200


async def test_admin_command_and_adjust(client):
    account = await _register(client)
    reply = await client.post("/cms/admin/command", headers=ADMIN, json={"text": "设置汇率 7.3"})
    assert reply.json()["data"]["reply"] == "✅ 汇率已更新为: 1 USDT = 7.3 CNY"
    assert (await client.get("/v1/public/config")).json()["data"]["rate"] == "7.3"

    adjusted = await client.post("/cms/admin/account/adjust", headers=ADMIN, json={
        "account_id": account["id"], "amount": "12.5", "memo": "活动奖励",
    })
    assert adjusted.json()["data"]["balance_after"] == "12.5000"

    history = (await client.get("/v1/ledger/history", headers=await _login(client))).json()["data"]
    assert [e["category"] for e in history] == ["operator_adjustment"]


async def test_reconcile_without_lifespan_is_conflict(client):
    resp = await client.post("/cms/admin/reconcile", headers=ADMIN)
    assert resp.status_code == 409
