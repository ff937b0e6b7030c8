"""
# @Time    : 2025/10/28 3:31
# @Author  : Pedro
# @File    : invite_code.py
# @Software: PyCharm
"""
import random
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.model.account import Account


# ======================================================
# 🎲 生成唯一邀请码
# ======================================================
async def generate_invite_code(session: AsyncSession, length: int = 8) -> str:
    """生成唯一邀请码（内部会自动检查 DB 是否重复）"""

    async def _exists(code: str) -> bool:
        stmt = select(Account.id).where(Account.referral_code == code)
        return (await session.execute(stmt)).scalar_one_or_none() is not None

    code = "".join(random.choices(string.ascii_uppercase + string.digits, k=length))
    while await _exists(code):
        code = "".join(random.choices(string.ascii_uppercase + string.digits, k=length))

    return code
