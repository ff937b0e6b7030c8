# -*- coding: utf-8 -*-
"""
Storefront-Core 接口定义层（Interface Layer）
--------------------------------------------
✅ 提供通用字段和查询方法，不注册到数据库
✅ 由 model 层继承实现实际 ORM 映射
✅ 兼容 SQLAlchemy 2.x 异步 Session
"""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar, Union

from sqlalchemy import Column, DateTime, Integer, asc, desc, func, select

from app.core.db import Base, get_session_factory, utcnow

T = TypeVar("T", bound="BaseCrud")


# ======================================================
# 🧩 通用抽象基类
# ======================================================
class BaseCrud(Base):
    """基础 CRUD 抽象类，不绑定表名"""
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    # ======================================================
    # 🔍 通用查询
    # ======================================================
    @classmethod
    async def get(
            cls: Type[T],
            *,
            one: bool = True,
            order_by: str | None = None,
            sort: str = "asc",
            limit: int | None = None,
            **filters: Any,
    ) -> Union[Optional[T], list[T]]:
        async with get_session_factory()() as session:
            stmt = select(cls).filter_by(**filters)

            if order_by and hasattr(cls, order_by):
                order_col = getattr(cls, order_by)
                stmt = stmt.order_by(
                    desc(order_col) if sort.lower() == "desc" else asc(order_col)
                )
            if limit is not None:
                stmt = stmt.limit(limit)

            result = await session.execute(stmt)
            if one:
                return result.scalars().first()
            return list(result.scalars().all())

    # ======================================================
    # 📄 通用分页查询
    # ======================================================
    @classmethod
    async def paginate(
            cls: Type[T],
            *,
            page: int = 1,
            size: int = 10,
            filters: Optional[dict] = None,
            order_by: Optional[str] = None,
            sort: str = "desc",
    ) -> tuple[list[T], int]:
        """返回: (items, total)"""
        async with get_session_factory()() as session:
            stmt = select(cls)
            count_stmt = select(func.count(cls.id))

            if filters:
                for k, v in filters.items():
                    if v is not None and hasattr(cls, k):
                        stmt = stmt.where(getattr(cls, k) == v)
                        count_stmt = count_stmt.where(getattr(cls, k) == v)

            if order_by and hasattr(cls, order_by):
                order_col = getattr(cls, order_by)
                stmt = stmt.order_by(
                    desc(order_col) if sort.lower() == "desc" else asc(order_col)
                )
            else:
                stmt = stmt.order_by(desc(cls.id))

            offset = max(page - 1, 0) * size
            items = list((await session.execute(stmt.offset(offset).limit(size))).scalars().all())
            total = (await session.execute(count_stmt)).scalar() or 0
            return items, int(total)

    # ======================================================
    # 🆕 创建记录
    # ======================================================
    @classmethod
    async def create(cls: Type[T], **data: Any) -> T:
        async with get_session_factory()() as session:
            obj = cls(**data)
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            return obj


# ======================================================
# 🕒 通用时间戳
# ======================================================
class InfoCrud(BaseCrud):
    __abstract__ = True

    create_time = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    update_time = Column(DateTime(timezone=True), onupdate=utcnow)
