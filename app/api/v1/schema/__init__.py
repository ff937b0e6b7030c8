"""
# @Time    : 2025/11/16 14:00
# @Author  : Pedro
# @File    : __init__.py
# @Software: PyCharm
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def parse_decimal(v: Any, *, allow_empty: bool = False) -> Optional[Decimal]:
    """金额字段统一解析（拒绝 NaN / Infinity / 空字符串）"""
    if v is None or (isinstance(v, str) and not v.strip()):
        if allow_empty:
            return None
        raise ValueError("金额不能为空")
    try:
        value = Decimal(str(v).strip())
    except InvalidOperation:
        raise ValueError(f"无效金额格式: {v}")
    if not value.is_finite():
        raise ValueError(f"无效金额格式: {v}")
    return value
