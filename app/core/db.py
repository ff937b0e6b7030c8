# -*- coding: utf-8 -*-
"""
Storefront-Core 异步 ORM 基础
---------------------------------------------
✅ declarative Base
✅ 内置异步 engine / session_factory（延迟初始化，可重新绑定）
✅ transaction() 自动事务上下文：成功提交，异常回滚
✅ UTC 时间工具（SQLite 读回的 naive 时间按 UTC 处理）
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

# ======================================================
# ⚙️ ORM Base 定义
# ======================================================
Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


# ======================================================
# 🕒 时间工具
# ======================================================
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite 不保存时区，读回的 naive datetime 统一视为 UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ======================================================
# ⚙️ 异步引擎 & Session 工厂
# ======================================================
def configure_engine(url: Optional[str] = None, echo: bool = False) -> AsyncEngine:
    """
    (重新)绑定数据库引擎
    - 启动时按 settings.database.url 初始化
    - 测试时可直接传入临时数据库地址
    """
    global _engine, _session_factory

    if url is None:
        from app.config.settings_manager import get_current_settings
        settings = get_current_settings()
        url = settings.database.url
        echo = settings.database.echo

    kwargs = {"echo": echo, "future": True}
    if url.startswith("sqlite"):
        # SQLite 每个会话独立连接，写锁由数据库自身串行化
        kwargs["poolclass"] = NullPool
        kwargs["connect_args"] = {"timeout": 30}

    _engine = create_async_engine(url, **kwargs)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False, class_=AsyncSession)
    return _engine


def get_engine() -> AsyncEngine:
    if _engine is None:
        configure_engine()
    return _engine


def get_session_factory() -> async_sessionmaker:
    if _session_factory is None:
        configure_engine()
    return _session_factory


async def create_all():
    """建表（开发 / 测试环境）"""
    # 确保所有模型已注册到 Base.metadata
    import app.api.v1.model  # noqa: F401
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all():
    import app.api.v1.model  # noqa: F401
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def dispose_engine():
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


# ======================================================
# 🔒 自动事务上下文
# ======================================================
@asynccontextmanager
async def transaction() -> AsyncGenerator[AsyncSession, None]:
    """
    一个 with 块就是一个原子单元：
    所有读写在同一事务内，任何异常都会整体回滚
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
