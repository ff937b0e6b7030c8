"""
# @Time    : 2025/11/15 6:03
# @Author  : Pedro
# @File    : setting.py
# @Software: PyCharm
"""
from sqlalchemy import Column, String, Text

from app.core.db import Base


class Setting(Base):
    """运行期 key-value 配置（汇率 / 手续费 / 收款地址）"""

    __tablename__ = "settings"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)


EXCHANGE_RATE = "exchange_rate"
FEE_RATE = "fee_rate"
RECEIVING_ADDRESS = "receiving_address"
