# app/api/v1/ledger.py
from fastapi import APIRouter, Depends

from app.api.v1.model.account import Account
from app.api.v1.services.account_service import AccountService
from app.core.auth import login_required
from app.core.response import StoreResponse

rp = APIRouter(prefix="/ledger", tags=["资金流水"])


@rp.get("/history", name="资金流水")
async def ledger_history(account: Account = Depends(login_required)):
    entries = await AccountService.ledger_history(account.id)
    return StoreResponse.success(entries)
