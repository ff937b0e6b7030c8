"""
API 注册入口
"""
from fastapi import FastAPI

from app.api.cms import create_cms
from app.api.v1 import create_v1


def register_blueprint(app: FastAPI):
    app.include_router(create_v1())
    app.include_router(create_cms())
