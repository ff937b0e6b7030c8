# -*- coding: utf-8 -*-
"""
FastAPI 应用初始化入口
--------------------------------------------
✅ lifespan 模式（数据库 / Redis / 对账任务的启动与清理）
✅ 模块自动注册（v1 买家接口 + cms 运营接口）
✅ 日志 / CORS / 异常 / 配置加载
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from app.config.settings_manager import get_current_settings, init_settings


# ======================================================
# 🧱 注册模块与服务
# ======================================================
def register_blueprints(app: FastAPI):
    """注册 API 模块"""
    from app.api import register_blueprint
    register_blueprint(app)
    logger.info("✅ 已注册 API 模块: v1 / cms")


def register_cors(app: FastAPI):
    """注册 CORS 中间件"""
    from fastapi.middleware.cors import CORSMiddleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def register_exception_handlers(app: FastAPI):
    """注册全局异常"""
    from app.core.exception import register_exception_handlers
    register_exception_handlers(app)


def register_logger(app: FastAPI):
    """统一日志系统"""
    from app.core.logger import setup_logger
    setup_logger(app, to_file=get_current_settings().app.env != "test")


def build_reconciler():
    """对账任务依赖：TronGrid 证据源 + 共享的配置 / 订单服务"""
    from app.api.v1.services.registry import get_config_provider, get_order_service
    from app.api.v1.worker.payment_reconciler import PaymentReconciler
    from app.extension.tron.explorer import TronGridClient

    return PaymentReconciler(
        evidence_source=TronGridClient(),
        config_provider=get_config_provider(),
        order_service=get_order_service(),
    )


# ======================================================
# 🧬 lifespan 生命周期管理器
# ======================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """统一管理 startup / shutdown"""
    from app.api.v1.worker.payment_reconciler import ReconcilerTask
    from app.core.db import configure_engine, create_all, dispose_engine
    from app.extension.redis.redis_client import rds

    settings = get_current_settings()
    logger.info("🚀 FastAPI 启动中，正在初始化模块...")

    # 1️⃣ 数据库
    if getattr(app.state, "engine_configured", False) is False:
        configure_engine()
    if settings.database.auto_create:
        await create_all()

    # 2️⃣ 对账任务
    app.state.reconciler = build_reconciler()
    task = None
    if settings.reconciler.enabled:
        task = ReconcilerTask(app.state.reconciler, settings.reconciler.interval_seconds)
        task.start()

    logger.info("✅ 所有模块初始化完成，系统启动成功。")

    yield

    # ---- shutdown 阶段 ----
    logger.info("🧹 FastAPI 正在关闭中，清理资源...")
    if task is not None:
        await task.stop()
    await rds.close()
    if getattr(app.state, "engine_configured", False) is False:
        await dispose_engine()


# ======================================================
# 🏗️ 应用工厂
# ======================================================
def create_app(engine_configured: bool = False) -> FastAPI:
    """
    构建 FastAPI 实例并注册所有依赖
    engine_configured=True 时沿用外部已绑定的数据库引擎（测试）
    """
    settings = get_current_settings()
    docs_url = "/docs" if settings.app.debug else None
    redoc_url = "/redoc" if settings.app.debug else None
    openapi_url = "/openapi.json" if settings.app.debug else None

    app = FastAPI(
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
        title=settings.app.name,
        version=settings.app.version,
        description="Storefront order & payment reconciliation backend",
        debug=settings.app.debug,
        lifespan=lifespan,
    )
    app.state.engine_configured = engine_configured
    init_settings(app)

    register_cors(app)
    register_logger(app)
    register_blueprints(app)
    register_exception_handlers(app)

    logger.info(f"✅ FastAPI 初始化完成 | 环境: {settings.app.env}")
    return app
