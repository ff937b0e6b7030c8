# app/api/v1/model/withdrawal.py

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String

from app.core.enums import WithdrawalStatus
from app.core.interface import InfoCrud


class WithdrawalRequest(InfoCrud):
    __tablename__ = "withdrawal_requests"

    account_id = Column(Integer, ForeignKey("accounts.id"), index=True, nullable=False)
    amount = Column(Numeric(20, 4), nullable=False)
    fee = Column(Numeric(20, 4), nullable=False)
    net_amount = Column(Numeric(20, 4), nullable=False)

    rail = Column(String(20), nullable=False)
    destination = Column(String(255), nullable=False)

    status = Column(String(20), nullable=False, default=WithdrawalStatus.PENDING.value)
    reject_reason = Column(String(255), nullable=True)
