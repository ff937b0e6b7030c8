# -*- coding: utf-8 -*-
"""
Storefront-Core 运营后台
---------------------------------------------
✅ 付款 / 提现审核（重复点击安全）
✅ 订单关闭 / 发货 / 收款码
✅ 手动调账 / 汇率手续费配置
✅ 商品管理
✅ 危险操作两步确认 / 文字指令 / 手动触发对账
"""
from fastapi import APIRouter, Depends, Request

from app.api.cms.schema.admin import (
    CommandSchema,
    ConfigUpdateSchema,
    DangerExecuteSchema,
    DangerRequestSchema,
    ManualAdjustSchema,
    OrderCloseSchema,
    PaymentCodeSchema,
    PaymentDecisionSchema,
    ProductSchema,
    ProductUpdateSchema,
    ShipSchema,
    WithdrawalDecisionSchema,
)
from app.api.cms.services.catalog_service import CatalogService
from app.api.cms.services.command_service import CommandService
from app.api.cms.services.operator_service import OperatorService
from app.api.v1.services.registry import get_operator_service
from app.core.exception import InvalidStateError
from app.core.response import StoreResponse

rp = APIRouter(prefix="/admin", tags=["运营后台"])


@rp.post("/payment/confirm", name="确认收款")
async def confirm_payment(data: PaymentDecisionSchema, op: OperatorService = Depends(get_operator_service)):
    result = await op.confirm_payment(data.order_no, allow_expired=data.allow_expired)
    return StoreResponse.success(result, msg=result.message)


@rp.post("/payment/reject", name="驳回付款凭证")
async def reject_payment(data: PaymentDecisionSchema, op: OperatorService = Depends(get_operator_service)):
    result = await op.reject_payment(data.order_no, data.reason)
    return StoreResponse.success(result, msg=result.message)


@rp.post("/withdrawal/confirm", name="确认提现")
async def confirm_withdrawal(data: WithdrawalDecisionSchema, op: OperatorService = Depends(get_operator_service)):
    result = await op.confirm_withdrawal(data.withdrawal_id)
    return StoreResponse.success(result, msg=result.message)


@rp.post("/withdrawal/reject", name="驳回提现")
async def reject_withdrawal(data: WithdrawalDecisionSchema, op: OperatorService = Depends(get_operator_service)):
    result = await op.reject_withdrawal(data.withdrawal_id, data.reason)
    return StoreResponse.success(result, msg=result.message)


@rp.post("/order/close", name="关闭订单")
async def close_order(data: OrderCloseSchema, op: OperatorService = Depends(get_operator_service)):
    result = await op.close_order(data.order_no)
    return StoreResponse.success(result, msg=result.message)


@rp.post("/order/ship", name="填写物流单号")
async def ship_order(data: ShipSchema, op: OperatorService = Depends(get_operator_service)):
    result = await op.ship_order(data.order_no, data.tracking_number)
    return StoreResponse.success(result, msg=result.message)


@rp.post("/order/payment_code", name="上传收款码")
async def payment_code(data: PaymentCodeSchema, op: OperatorService = Depends(get_operator_service)):
    result = await op.set_payment_code(data.order_no, data.payment_code_ref)
    return StoreResponse.success(result, msg=result.message)


@rp.post("/account/adjust", name="手动调账")
async def adjust_balance(data: ManualAdjustSchema):
    entry = await OperatorService.adjust_balance(data.account_id, data.amount, data.memo)
    return StoreResponse.success(entry, msg="调账成功")


@rp.post("/config", name="更新汇率 / 手续费 / 收款地址")
async def update_config(data: ConfigUpdateSchema, op: OperatorService = Depends(get_operator_service)):
    config = await op.update_config(data.rate, data.fee_percent, data.receiving_address)
    return StoreResponse.success(config.to_dict(), msg="配置已更新")


# ======================================================
# 🛍️ 商品管理
# ======================================================
@rp.get("/product", name="全部商品")
async def product_list():
    return StoreResponse.success(await CatalogService.list_products(active_only=False))


@rp.post("/product", name="新增商品")
async def product_create(data: ProductSchema):
    product = await CatalogService.create(**data.model_dump())
    return StoreResponse.success(product, msg="商品已创建")


@rp.put("/product/{product_id}", name="修改商品")
async def product_update(product_id: int, data: ProductUpdateSchema):
    product = await CatalogService.update(product_id, **data.model_dump(exclude_unset=True))
    return StoreResponse.success(product, msg="商品已更新")


@rp.delete("/product/{product_id}", name="删除商品")
async def product_delete(product_id: int):
    await CatalogService.delete(product_id)
    return StoreResponse.success({"id": product_id}, msg="商品已删除")


# ======================================================
# 💥 危险操作 / 指令 / 对账
# ======================================================
@rp.post("/danger/request", name="申请危险操作确认码")
async def danger_request(data: DangerRequestSchema, op: OperatorService = Depends(get_operator_service)):
    code = await op.request_danger(data.action)
    return StoreResponse.success({"action": data.action, "code": code}, msg="请在 120 秒内确认")


@rp.post("/danger/execute", name="执行危险操作")
async def danger_execute(data: DangerExecuteSchema, op: OperatorService = Depends(get_operator_service)):
    counts = await op.execute_danger(data.action, data.code)
    return StoreResponse.success(counts, msg="已执行")


@rp.post("/command", name="文字指令")
async def command(data: CommandSchema, op: OperatorService = Depends(get_operator_service)):
    reply = await CommandService(op).handle(data.text)
    return StoreResponse.success({"reply": reply})


@rp.post("/reconcile", name="立即执行一轮对账")
async def reconcile_now(request: Request):
    reconciler = getattr(request.app.state, "reconciler", None)
    if reconciler is None:
        raise InvalidStateError("对账任务未初始化")
    report = await reconciler.run_once()
    return StoreResponse.success(report.__dict__)
