# app/api/v1/withdrawal.py
from fastapi import APIRouter, Depends

from app.api.v1.model.account import Account
from app.api.v1.schema.account import WithdrawalCreateSchema
from app.api.v1.services.withdrawal_service import WithdrawalService
from app.core.auth import login_required
from app.core.response import StoreResponse

rp = APIRouter(prefix="/withdrawal", tags=["提现"])


@rp.post("/create", name="申请提现")
async def create_withdrawal(data: WithdrawalCreateSchema, account: Account = Depends(login_required)):
    request = await WithdrawalService.create(account.id, data.amount, data.rail, data.destination)
    return StoreResponse.success(request, msg="提现申请已提交")
