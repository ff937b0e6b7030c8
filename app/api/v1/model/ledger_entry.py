# app/api/v1/model/ledger_entry.py
from sqlalchemy import Column, ForeignKey, Integer, Numeric, String

from app.core.interface import InfoCrud


class LedgerEntry(InfoCrud):
    """
    资金流水（只追加，不修改）
    balance_after 是写入时的余额快照，审计时无需回放历史
    """

    __tablename__ = "ledger_entries"

    account_id = Column(Integer, ForeignKey("accounts.id"), index=True, nullable=False)

    # topup / spend / withdrawal / withdrawal_reversal / referral_payout / operator_adjustment / order_refund
    category = Column(String(30), nullable=False)
    amount = Column(Numeric(20, 4), nullable=False)
    balance_after = Column(Numeric(20, 4), nullable=False)

    memo = Column(String(255))
    # 幂等键（如 referral:ORD-XXXX），同一个键只能入账一次
    reference = Column(String(128), unique=True, nullable=True)
