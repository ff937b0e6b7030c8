"""
# @Time    : 2025/10/28 6:37
# @Author  : Pedro
# @File    : auth.py
# @Software: PyCharm

认证约定：
- 买家口令使用 passlib(argon2) 哈希保存，登录时校验
- 登录签发 JWT（HS256），买家接口通过 login_required 取当前账户，不信任请求体里的 account_id
- 运营后台接口使用固定 Bearer Token（settings.auth.admin_token）
"""
import hmac
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import ExpiredSignatureError, InvalidTokenError
from passlib.context import CryptContext

from app.api.v1.model.account import Account
from app.config.settings_manager import get_current_settings
from app.core.exception import AuthFailed, Forbidden

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache()
def pwd_context() -> CryptContext:
    settings = get_current_settings()
    return CryptContext(schemes=settings.auth.password_schemes, deprecated="auto")


def hash_password(raw: str) -> str:
    return pwd_context().hash(raw)


def verify_password(raw: str, hashed: str) -> bool:
    return pwd_context().verify(raw, hashed)


# ======================================================
# 🔐 买家会话 Token
# ======================================================
class JWTService:
    def __init__(self):
        auth = get_current_settings().auth
        self.secret = auth.secret
        self.algorithm = auth.algorithm
        self.access_exp = timedelta(seconds=auth.access_expires_in)

    def create_access_token(self, account_id: int) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        payload = {
            "uid": account_id,
            "iat": now,
            "exp": now + self.access_exp,
            "type": "access",
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": int(self.access_exp.total_seconds()),
        }

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AuthFailed("Token 已过期")
        except InvalidTokenError:
            raise AuthFailed("Token 无效")

        if payload.get("type") != "access" or not isinstance(payload.get("uid"), int):
            raise AuthFailed("Token 无效")
        return payload


@lru_cache()
def jwt_service() -> JWTService:
    return JWTService()


async def get_current_account(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Account:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthFailed("缺少认证凭据")

    payload = jwt_service().verify(credentials.credentials)
    account = await Account.get(id=payload["uid"])
    if account is None:
        raise AuthFailed("账户不存在或已被删除")
    return account


async def login_required(current_account: Account = Depends(get_current_account)) -> Account:
    return current_account


# ======================================================
# 👮 运营后台
# ======================================================
async def admin_required(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """运营后台 Bearer Token 校验"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthFailed("缺少运营凭证")

    expected = get_current_settings().auth.admin_token
    if not hmac.compare_digest(credentials.credentials, expected):
        raise Forbidden("运营凭证无效")
    return "operator"
