# app/cli/db/init.py
"""
建表 + 写入运行期配置默认值
    python -m app.cli.db.init          # 已初始化则跳过
    python -m app.cli.db.init --force  # 删表重建（会清空所有数据）
"""
import argparse
import asyncio

from sqlalchemy import select

from app.api.v1.model.setting import EXCHANGE_RATE, FEE_RATE, RECEIVING_ADDRESS, Setting
from app.config.settings_manager import get_current_settings
from app.core.db import create_all, dispose_engine, drop_all, transaction


async def init_db(force: bool = False):
    settings = get_current_settings()

    if force:
        print("⚠️ Dropping all tables ...")
        await drop_all()

    print("✅ Creating tables ...")
    await create_all()

    defaults = {
        EXCHANGE_RATE: str(settings.pricing.default_exchange_rate),
        FEE_RATE: str(settings.pricing.default_fee_percent),
    }
    if settings.tron.wallet_address:
        defaults[RECEIVING_ADDRESS] = settings.tron.wallet_address

    async with transaction() as session:
        existing = set((await session.execute(select(Setting.key))).scalars().all())
        for key, value in defaults.items():
            if key in existing:
                continue
            session.add(Setting(key=key, value=value))
            print(f"🔧 写入默认配置 {key}={value}")

    await dispose_engine()
    print("✅ 数据库初始化完成")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--force", action="store_true")
    asyncio.run(init_db(force=parser.parse_args().force))
