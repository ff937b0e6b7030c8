"""
# @Time    : 2025/11/15 6:10
# @Author  : Pedro
# @File    : money.py
# @Software: PyCharm
"""
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

USDT_PLACES = Decimal("0.0001")
CNY_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """float / str / int 统一转 Decimal（float 先转 str，避免二进制误差）"""
    if isinstance(value, Decimal):
        return value
    if value is None:
        raise InvalidOperation("金额不能为空")
    if isinstance(value, float):
        value = repr(value)
    return Decimal(str(value).strip())


def q_usdt(value: Any) -> Decimal:
    """USDT 保留 4 位小数"""
    return to_decimal(value).quantize(USDT_PLACES, rounding=ROUND_HALF_UP)


def q_usdt_down(value: Any) -> Decimal:
    """佣金等派发金额向下取整，避免多发"""
    return to_decimal(value).quantize(USDT_PLACES, rounding=ROUND_DOWN)


def q_cny(value: Any) -> Decimal:
    """法币保留 2 位小数"""
    return to_decimal(value).quantize(CNY_PLACES, rounding=ROUND_HALF_UP)
