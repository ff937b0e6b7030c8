"""
# @Time    : 2025/10/26 20:43
# @Author  : Pedro
# @File    : __init__.py
# @Software: PyCharm
"""
from .redis_client import RedisClient, rds

__all__ = ["RedisClient", "rds"]
