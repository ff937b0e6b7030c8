"""
# @Time    : 2025/11/15 6:03
# @Author  : Pedro
# @File    : order_number_generator.py
# @Software: PyCharm
"""
import secrets
import string
import time

_ALPHABET = string.ascii_uppercase + string.digits


class OrderNumberGenerator:

    @staticmethod
    def generate(prefix: str = "ORD") -> str:
        # 毫秒时间戳后 6 位 + 4 位随机，短且全局唯一（数据库另有唯一约束）
        ts = str(int(time.time() * 1000))[-6:]
        rand = "".join(secrets.choice(_ALPHABET) for _ in range(4))
        return f"{prefix}-{ts}{rand}"
