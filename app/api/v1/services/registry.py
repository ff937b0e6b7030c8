"""
# @Time    : 2025/11/16 11:20
# @Author  : Pedro
# @File    : registry.py
# @Software: PyCharm

进程内服务实例（路由通过 Depends 获取，测试可 reset 后重新注入）
"""
from typing import Optional

from app.api.v1.services.config_service import RateFeeConfigProvider
from app.api.v1.services.order_service import OrderService

_config_provider: Optional[RateFeeConfigProvider] = None
_order_service: Optional[OrderService] = None
_operator_service = None


def get_config_provider() -> RateFeeConfigProvider:
    global _config_provider
    if _config_provider is None:
        _config_provider = RateFeeConfigProvider()
    return _config_provider


def get_order_service() -> OrderService:
    global _order_service
    if _order_service is None:
        _order_service = OrderService(config_provider=get_config_provider())
    return _order_service


def get_operator_service():
    # 确认码保存在实例内，需要全进程共享同一个
    from app.api.cms.services.operator_service import OperatorService

    global _operator_service
    if _operator_service is None:
        _operator_service = OperatorService(
            order_service=get_order_service(), config_provider=get_config_provider(),
        )
    return _operator_service


def reset_services():
    global _config_provider, _order_service, _operator_service
    _config_provider = None
    _order_service = None
    _operator_service = None
