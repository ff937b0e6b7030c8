"""
# @Time    : 2025/10/30 20:25
# @Author  : Pedro
# @File    : account.py
# @Software: PyCharm
"""
from sqlalchemy import Column, ForeignKey, Integer, Numeric, String

from app.core.interface import InfoCrud


class Account(InfoCrud):
    """
    👤 买家账户
    ----------------------
    balance 只能通过 LedgerService 修改（每次变动都配一条流水）
    """

    __tablename__ = "accounts"

    contact = Column(String(128), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    balance = Column(Numeric(20, 4), nullable=False, default=0)

    # 直推上级（只发放一级佣金）
    referrer_id = Column(Integer, ForeignKey("accounts.id"), nullable=True, index=True)
    referral_code = Column(String(16), unique=True, index=True, nullable=True)
