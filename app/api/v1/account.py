# app/api/v1/account.py
from fastapi import APIRouter, Depends

from app.api.v1.model.account import Account
from app.api.v1.schema.account import AccountLoginSchema, AccountOut, AccountRegisterSchema
from app.api.v1.services.account_service import AccountService
from app.core.auth import login_required
from app.core.response import StoreResponse

rp = APIRouter(prefix="/account", tags=["账户"])


@rp.post("/register", name="注册")
async def register(data: AccountRegisterSchema):
    account = await AccountService.register(data.contact, data.password, data.referral_code)
    return StoreResponse.success(AccountOut.model_validate(account), msg="注册成功")


@rp.post("/login", name="登录")
async def login(data: AccountLoginSchema):
    account, tokens = await AccountService.login(data.contact, data.password)
    return StoreResponse.success({**tokens, "account": AccountOut.model_validate(account)}, msg="登录成功")


@rp.get("/profile", name="我的账户")
async def profile(account: Account = Depends(login_required)):
    return StoreResponse.success(AccountOut.model_validate(account))
