from fastapi import APIRouter, Depends

from app.core.auth import admin_required


def create_cms() -> APIRouter:
    """运营后台路由，统一挂 Bearer Token 校验"""
    from app.api.cms.admin import rp as admin_rp

    router_cms = APIRouter(prefix="/cms", dependencies=[Depends(admin_required)])
    router_cms.include_router(admin_rp)
    return router_cms
