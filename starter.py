# -*- coding: utf-8 -*-
"""
Storefront-Core 启动入口
--------------------------------
python starter.py                 按 APP_ENV 配置启动 API + 对账任务
python starter.py --port 8080     覆盖监听端口
python starter.py --no-reconcile  只启动 API（多实例部署时只保留一个对账进程）
"""
import argparse
import logging

import uvicorn

from app import create_app
from app.config.settings_manager import get_current_settings

settings = get_current_settings()
app = create_app()


def main():
    parser = argparse.ArgumentParser(description="Storefront-Core API server")
    parser.add_argument("--host", default=settings.app.host)
    parser.add_argument("--port", type=int, default=settings.app.port)
    parser.add_argument("--no-reconcile", action="store_true", help="不在本进程运行 USDT 对账任务")
    args = parser.parse_args()

    if args.no_reconcile:
        settings.reconciler.enabled = False

    logging.getLogger("uvicorn.error").setLevel(logging.ERROR)
    print(f"🚀 {settings.app.name} 正在启动 http://{args.host}:{args.port} ...")

    # reload 会在子进程重新导入模块，命令行覆盖项不会带过去
    uvicorn.run(
        "starter:app" if settings.app.debug and not args.no_reconcile else app,
        host=args.host,
        port=args.port,
        reload=settings.app.debug and not args.no_reconcile,
    )


if __name__ == "__main__":
    main()
