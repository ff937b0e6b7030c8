# app/api/v1/order.py
from fastapi import APIRouter, Depends, Query

from app.api.v1.model.account import Account
from app.api.v1.schema.order import (
    BuyerOrderActionSchema,
    ChangeRailSchema,
    EvidenceSchema,
    OrderCreateSchema,
    TopupCreateSchema,
)
from app.api.v1.services.order_service import OrderService, order_to_dict
from app.api.v1.services.pricing_service import LineItem
from app.api.v1.services.registry import get_config_provider, get_order_service
from app.core.auth import login_required
from app.core.enums import PaymentRail
from app.core.response import StoreResponse

rp = APIRouter(prefix="/order", tags=["订单"])


async def _pay_target(order, rail: PaymentRail) -> dict:
    """收款目标：USDT 返回收款地址，法币返回运营上传的收款码"""
    if rail is PaymentRail.USDT:
        config = await get_config_provider().get()
        return {"wallet": config.receiving_address}
    if rail.is_fiat:
        return {"payment_code_ref": order.payment_code_ref}
    return {}


@rp.post("/create", name="用户端下单")
async def create_order(
        data: OrderCreateSchema,
        account: Account = Depends(login_required),
        orders: OrderService = Depends(get_order_service),
):
    order = await orders.create(
        account_id=account.id,
        items=[LineItem(product_id=i.product_id, quantity=i.quantity) for i in data.items],
        rail=data.rail,
        shipping_info=data.shipping_info.model_dump() if data.shipping_info else None,
        use_balance=data.use_balance,
    )
    return StoreResponse.success({
        "order_no": order.order_no,
        "status": order.status,
        "usdt_amount": order.usdt_amount,
        "cny_amount": order.cny_amount,
        "fee_amount": order.fee_amount,
        "balance_deducted": order.balance_deducted,
        "expires_at": order.expires_at,
        "pay_target": await _pay_target(order, data.rail),
    }, msg="下单成功")


@rp.post("/topup", name="余额充值下单")
async def create_topup(
        data: TopupCreateSchema,
        account: Account = Depends(login_required),
        orders: OrderService = Depends(get_order_service),
):
    order = await orders.create_topup(account.id, data.amount, data.rail)
    return StoreResponse.success({
        "order_no": order.order_no,
        "usdt_amount": order.usdt_amount,
        "cny_amount": order.cny_amount,
        "expires_at": order.expires_at,
        "pay_target": await _pay_target(order, data.rail),
    }, msg="充值订单已创建")


@rp.post("/change_rail", name="更换支付方式")
async def change_rail(
        data: ChangeRailSchema,
        account: Account = Depends(login_required),
        orders: OrderService = Depends(get_order_service),
):
    order = await orders.change_rail(data.order_no, account.id, data.rail)
    return StoreResponse.success(order_to_dict(order), msg="支付方式已更新")


@rp.post("/confirm", name="买家确认已付款")
async def confirm_by_buyer(
        data: BuyerOrderActionSchema,
        account: Account = Depends(login_required),
        orders: OrderService = Depends(get_order_service),
):
    order = await orders.confirm_by_buyer(data.order_no, account.id)
    return StoreResponse.success(order_to_dict(order), msg="已通知客服核对")


@rp.post("/evidence", name="上传付款凭证")
async def upload_evidence(
        data: EvidenceSchema,
        account: Account = Depends(login_required),
        orders: OrderService = Depends(get_order_service),
):
    order = await orders.upload_evidence(data.order_no, account.id, data.evidence_ref)
    return StoreResponse.success(order_to_dict(order), msg="凭证已提交，等待审核")


@rp.post("/cancel", name="买家取消订单")
async def cancel_order(
        data: BuyerOrderActionSchema,
        account: Account = Depends(login_required),
        orders: OrderService = Depends(get_order_service),
):
    changed = await orders.cancel(data.order_no, account_id=account.id)
    return StoreResponse.success({"order_no": data.order_no, "changed": changed}, msg="订单已取消")


@rp.get("/list", name="我的订单")
async def list_orders(
        page: int = Query(1, ge=1),
        size: int = Query(20, ge=1, le=100),
        account: Account = Depends(login_required),
):
    items, total = await OrderService.list_for_account(account.id, page, size)
    return StoreResponse.page(items=[order_to_dict(o) for o in items], total=total, page=page, size=size)


@rp.get("/{order_no}", name="订单详情")
async def order_detail(order_no: str, account: Account = Depends(login_required)):
    order = await OrderService.get(order_no, account_id=account.id)
    return StoreResponse.success(order_to_dict(order))
