# @Time    : 2025/11/11 01:30
# @Author  : Pedro
# @File    : response.py
# @Software: PyCharm
"""
Storefront-Core 通用响应模型（ORM兼容 + 分页支持 + Decimal安全）
✅ 统一响应封装：success / page
✅ 自动识别 ORM / Pydantic / dict / list
✅ Decimal 以字符串输出，金额不丢精度
"""

import dataclasses
import datetime
import json
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import JSONResponse

T = TypeVar("T")


# =========================================================
# ✅ 通用序列化函数
# =========================================================
def serialize(data: Any) -> Any:
    """递归序列化各种复杂对象到 JSON 安全格式"""
    if isinstance(data, (datetime.datetime, datetime.date)):
        return data.isoformat()

    if isinstance(data, Decimal):
        # 金额一律字符串，前端按需格式化
        return format(data, "f")

    if isinstance(data, Enum):
        return data.value

    if isinstance(data, (bytes, bytearray)):
        return data.decode("utf-8", errors="ignore")

    if isinstance(data, set):
        return list(data)

    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return serialize(dataclasses.asdict(data))

    if isinstance(data, BaseModel):
        return serialize(data.model_dump())

    if hasattr(data, "__table__"):  # SQLAlchemy ORM
        return {c.key: serialize(getattr(data, c.key)) for c in data.__table__.columns}

    if isinstance(data, (list, tuple)):
        return [serialize(i) for i in data]

    if isinstance(data, dict):
        return {k: serialize(v) for k, v in data.items()}

    return data


# =========================================================
# ✅ JSON Response
# =========================================================
class StoreJSONResponse(JSONResponse):
    """统一 JSONResponse 编码（UTF-8 + 禁止 ASCII 转义）"""
    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        ).encode("utf-8")


# =========================================================
# ✅ StoreResponse 泛型模型
# =========================================================
class StoreResponse(BaseModel, Generic[T]):
    code: int = Field(default=0, description="状态码")
    msg: str = Field(default="success", description="消息")
    data: Optional[T] = Field(default=None, description="数据体")

    model_config = ConfigDict(arbitrary_types_allowed=True, from_attributes=True)

    @classmethod
    def success(cls, data: Optional[Any] = None, msg: str = "success", code: int = 0):
        """统一成功响应"""
        payload = {"code": code, "msg": msg, "data": serialize(data)}
        return StoreJSONResponse(content=payload)

    @classmethod
    def page(cls, *, items: Any, total: int, page: int, size: int, msg: str = "success", code: int = 0):
        """分页统一输出"""
        data = {
            "items": serialize(items or []),
            "total": total,
            "page": page,
            "size": size,
        }
        return StoreJSONResponse(content={"code": code, "msg": msg, "data": data})
