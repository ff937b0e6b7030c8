"""
Storefront-Core Settings Manager (Safe Lazy Import)
--------------------------------
✅ 支持全局单例访问
✅ 自动注册到 FastAPI
✅ 避免 config ↔ core 循环导入
"""

from typing import Optional
from fastapi import FastAPI


def init_settings(app: Optional[FastAPI] = None):
    """
    初始化并注册 settings。
    - 若传入 app，则注册到 app.state；
    """
    from app.core.config import init_settings as _init
    return _init(app)


def get_current_settings():
    """
    从任意模块安全地获取当前 settings 实例。
    """
    # ✅ 延迟导入
    from app.core.config import get_current_settings as _get
    return _get()
