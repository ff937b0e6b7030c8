"""
# @Time    : 2025/10/28 6:40
# @Author  : Pedro
# @File    : account_service.py
# @Software: PyCharm

账户注册 / 登录（登录成功签发 JWT）
"""
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.api.v1.model.account import Account
from app.api.v1.model.ledger_entry import LedgerEntry
from app.api.v1.services.ledger_service import LedgerService
from app.core.auth import hash_password, jwt_service, verify_password
from app.core.db import transaction
from app.core.exception import AuthFailed, ValidationError
from app.util.invite_code import generate_invite_code


class AccountService:

    @staticmethod
    async def register(contact: str, password: str, referral_code: Optional[str] = None) -> Account:
        contact = (contact or "").strip()
        if not contact or not password:
            raise ValidationError("联系方式和密码不能为空")
        if len(password) < 6:
            raise ValidationError("密码至少 6 位")

        try:
            async with transaction() as session:
                exists = await session.scalar(select(Account.id).where(Account.contact == contact))
                if exists is not None:
                    raise ValidationError("该联系方式已注册")

                referrer_id = None
                if referral_code:
                    referrer_id = await session.scalar(
                        select(Account.id).where(Account.referral_code == referral_code.strip().upper())
                    )
                    if referrer_id is None:
                        raise ValidationError("推荐码无效")

                account = Account(
                    contact=contact,
                    password_hash=hash_password(password),
                    balance=0,
                    referrer_id=referrer_id,
                    referral_code=await generate_invite_code(session),
                )
                session.add(account)
                await session.flush()
        except IntegrityError as e:
            # 并发注册同一联系方式
            raise ValidationError("该联系方式已注册") from e

        logger.info(f"👤 新账户 {account.id} contact={contact} referrer={referrer_id}")
        return account

    @staticmethod
    async def authenticate(contact: str, password: str) -> Account:
        account = await Account.get(contact=(contact or "").strip())
        if account is None or not verify_password(password or "", account.password_hash):
            raise AuthFailed("账号或密码错误")
        return account

    @staticmethod
    async def login(contact: str, password: str) -> tuple[Account, dict]:
        account = await AccountService.authenticate(contact, password)
        logger.info(f"🔑 账户 {account.id} 登录")
        return account, jwt_service().create_access_token(account.id)

    @staticmethod
    async def ledger_history(account_id: int) -> list[LedgerEntry]:
        return await LedgerService.history(account_id)
