# -*- coding: utf-8 -*-
"""
Storefront-Core exception system
--------------------------------
业务异常统一继承 APIException，由全局处理器转成结构化 JSON：
    {"msg": ..., "error_code": ..., "request": "POST /v1/order/create", "trace_id": ...}
买家看到带原因的拒绝，不会出现 5xx。
"""
import traceback
import uuid
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel


class APIExceptionModel(BaseModel):
    msg: str = "sorry, we made a mistake (*￣︶￣)!"
    error_code: int = 999
    request: Optional[str] = None
    trace_id: Optional[str] = None


class APIException(Exception):
    def __init__(self, msg="sorry, we made a mistake (*￣︶￣)!", error_code=999, http_code=400):
        super().__init__(msg)
        self.msg = msg
        self.error_code = error_code
        self.http_code = http_code


class ValidationError(APIException):
    def __init__(self, msg="参数错误", error_code=1002):
        super().__init__(msg, error_code, http_code=400)


class InsufficientFundsError(ValidationError):
    def __init__(self, msg="余额不足", error_code=1101):
        super().__init__(msg, error_code)


class InsufficientStockError(ValidationError):
    def __init__(self, msg="库存不足", error_code=1102):
        super().__init__(msg, error_code)


class NotFound(APIException):
    def __init__(self, msg="资源未找到", error_code=1001):
        super().__init__(msg, error_code, http_code=404)


class InvalidStateError(APIException):
    def __init__(self, msg="当前状态不允许该操作", error_code=1103):
        super().__init__(msg, error_code, http_code=409)


class AuthFailed(APIException):
    def __init__(self, msg="认证失败", error_code=1003):
        super().__init__(msg, error_code, http_code=401)


class Forbidden(APIException):
    def __init__(self, msg="权限不足", error_code=1004):
        super().__init__(msg, error_code, http_code=403)


class ExternalSourceError(Exception):
    """
    外部付款凭证源（区块浏览器）不可用。
    只在对账任务内部捕获并记录，不返回给买家；
    与“暂无匹配”严格区分：源失败时本轮不做任何入账。
    """

    def __init__(self, msg: str, status_code: Optional[int] = None):
        super().__init__(msg)
        self.msg = msg
        self.status_code = status_code


def build_error_response(request: Request, msg: str, error_code: int, http_code: int, trace_id=None):
    trace_id = trace_id or uuid.uuid4().hex[:8]
    model = APIExceptionModel(
        msg=msg,
        error_code=error_code,
        request=f"{request.method} {request.url.path}",
        trace_id=trace_id,
    )
    return JSONResponse(status_code=http_code, content=model.model_dump())


def _safe_err_msg(exc: Exception) -> str:
    if isinstance(exc, APIException):
        return exc.msg
    return "服务器内部异常，请稍后重试"


def register_exception_handlers(app):

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        return build_error_response(request, exc.msg, exc.error_code, exc.http_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        first_err = exc.errors()[0] if exc.errors() else {}
        msg = first_err.get("msg", "参数错误")
        return build_error_response(request, msg, 1005, 422)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        trace_id = uuid.uuid4().hex[:8]
        tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        logger.error(f"[Unhandled] TraceID={trace_id} {request.method} {request.url.path}\n{tb_str}")
        return build_error_response(request, _safe_err_msg(exc), 9999, 500, trace_id)
