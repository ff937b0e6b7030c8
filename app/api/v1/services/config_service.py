"""
# @Time    : 2025/11/15
# @Author  : Pedro
# @File    : config_service.py
# @Software: PyCharm

汇率 / 手续费 / 收款地址配置
--------------------------------
✅ 唯一数据源：settings 表
✅ 可选 Redis 缓存，TTL = 对账间隔；显式更新时立即删缓存
✅ 以实例注入 PricingService / PaymentReconciler，不走进程级全局变量
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.model.setting import EXCHANGE_RATE, FEE_RATE, RECEIVING_ADDRESS, Setting
from app.config.settings_manager import get_current_settings
from app.core.db import get_session_factory, transaction
from app.core.exception import ValidationError
from app.extension.redis.redis_client import RedisClient, rds
from app.util.money import to_decimal
from app.util.redis_key_schema import redis_key_rate_fee_config


@dataclass(frozen=True)
class RateFeeConfig:
    rate: Decimal
    fee_percent: Decimal
    receiving_address: Optional[str]

    def to_dict(self) -> dict:
        return {
            "rate": str(self.rate),
            "fee_percent": str(self.fee_percent),
            "receiving_address": self.receiving_address,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RateFeeConfig":
        return cls(
            rate=Decimal(data["rate"]),
            fee_percent=Decimal(data["fee_percent"]),
            receiving_address=data.get("receiving_address"),
        )


class RateFeeConfigProvider:

    def __init__(self, redis: Optional[RedisClient] = None, ttl: Optional[int] = None):
        settings = get_current_settings()
        self.redis = redis or rds
        self.ttl = ttl or settings.reconciler.interval_seconds
        self._defaults = {
            EXCHANGE_RATE: settings.pricing.default_exchange_rate,
            FEE_RATE: settings.pricing.default_fee_percent,
            RECEIVING_ADDRESS: settings.tron.wallet_address,
        }

    # ======================================================
    # 🔍 读取
    # ======================================================
    async def get(self) -> RateFeeConfig:
        if self.redis.enabled:
            try:
                cached = await self.redis.get(redis_key_rate_fee_config())
                if cached:
                    return RateFeeConfig.from_dict(cached)
            except Exception as e:
                logger.warning(f"⚠️ 读取配置缓存失败，回落数据库: {e}")

        async with get_session_factory()() as session:
            config = await self.load(session)

        if self.redis.enabled:
            try:
                await self.redis.set(redis_key_rate_fee_config(), config.to_dict(), ex=self.ttl)
            except Exception as e:
                logger.warning(f"⚠️ 写入配置缓存失败: {e}")
        return config

    async def load(self, session: AsyncSession) -> RateFeeConfig:
        """在给定会话内直接读表（不走缓存）"""
        rows = (await session.execute(select(Setting))).scalars().all()
        values = {row.key: row.value for row in rows}

        def _decimal(key: str) -> Decimal:
            raw = values.get(key)
            if raw is None:
                return to_decimal(self._defaults[key])
            try:
                return Decimal(raw)
            except InvalidOperation:
                logger.error(f"❌ 配置 {key}={raw!r} 非法，使用默认值")
                return to_decimal(self._defaults[key])

        return RateFeeConfig(
            rate=_decimal(EXCHANGE_RATE),
            fee_percent=_decimal(FEE_RATE),
            receiving_address=values.get(RECEIVING_ADDRESS) or self._defaults[RECEIVING_ADDRESS],
        )

    # ======================================================
    # ✏️ 更新（运营指令 / 后台）
    # ======================================================
    async def update(
            self,
            *,
            rate: Optional[Decimal] = None,
            fee_percent: Optional[Decimal] = None,
            receiving_address: Optional[str] = None,
    ) -> RateFeeConfig:
        changes: dict[str, str] = {}
        if rate is not None:
            if rate <= 0:
                raise ValidationError("汇率必须大于 0")
            changes[EXCHANGE_RATE] = str(rate)
        if fee_percent is not None:
            if fee_percent < 0:
                raise ValidationError("手续费不能为负数")
            changes[FEE_RATE] = str(fee_percent)
        if receiving_address is not None:
            if not receiving_address.strip():
                raise ValidationError("收款地址不能为空")
            changes[RECEIVING_ADDRESS] = receiving_address.strip()

        if not changes:
            raise ValidationError("没有需要更新的配置")

        async with transaction() as session:
            for key, value in changes.items():
                row = await session.get(Setting, key)
                if row is None:
                    session.add(Setting(key=key, value=value))
                else:
                    row.value = value

        if self.redis.enabled:
            try:
                await self.redis.delete(redis_key_rate_fee_config())
            except Exception as e:
                logger.warning(f"⚠️ 清理配置缓存失败（最多 {self.ttl}s 后过期）: {e}")

        logger.info(f"⚙️ 配置已更新: {changes}")
        return await self.get()
