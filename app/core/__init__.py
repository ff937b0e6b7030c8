"""
# @Time    : 2025/10/28 1:55
# @Author  : Pedro
# @File    : __init__.py
# @Software: PyCharm
"""
from .db import Base, get_session_factory, transaction
from .exception import (
    APIException,
    InsufficientFundsError,
    InsufficientStockError,
    InvalidStateError,
    NotFound,
    ValidationError,
)
