"""
# @Time    : 2025/10/8 12:23
# @Author  : Pedro
# @File    : redis_key_schema.py
# @Software: PyCharm
"""


# 规范使用redis key 避免手写每个key出错
def redis_key_rate_fee_config() -> str:
    """汇率 / 手续费 / 收款地址缓存"""
    return "config:rate_fee"


def redis_channel_account_notify(account_id: int) -> str:
    """买家通知频道"""
    return f"notify:account:{account_id}"


def redis_key_danger_code(action: str) -> str:
    """危险操作一次性确认码"""
    return f"danger:code:{action}"
