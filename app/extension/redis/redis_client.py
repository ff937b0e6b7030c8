"""
Storefront-Core | Redis 异步客户端
---------------------------------------------------
✅ 自动延迟初始化
✅ JSON 自动序列化/反序列化
✅ 未配置 redis_url 时 enabled=False，调用方直接走数据库
✅ 测试可注入 fakeredis 实例
"""

import json
from typing import Any, Optional

import redis.asyncio as aioredis
from loguru import logger

from app.config.settings_manager import get_current_settings


class RedisClient:
    def __init__(self, client: Optional[aioredis.Redis] = None):
        self.client: Optional[aioredis.Redis] = client

    @property
    def enabled(self) -> bool:
        if self.client is not None:
            return True
        return bool(get_current_settings().redis.redis_url)

    # ===========================================================
    # 🔧 自动初始化逻辑
    # ===========================================================
    async def _ensure_client(self) -> aioredis.Redis:
        """确保 Redis 客户端已连接（延迟初始化）"""
        if self.client is not None:
            return self.client
        redis_url = get_current_settings().redis.redis_url
        self.client = aioredis.from_url(redis_url, decode_responses=True)
        logger.info(f"🔴 Redis 已连接: {redis_url}")
        return self.client

    # ===========================================================
    # 🧩 通用操作
    # ===========================================================
    async def set(self, key: str, value: Any, ex: Optional[int] = None):
        """设置键值，可选过期时间"""
        client = await self._ensure_client()
        if isinstance(value, (dict, list)):
            value = json.dumps(value, ensure_ascii=False)
        await client.set(key, value, ex=ex)

    async def get(self, key: str, as_json: bool = True):
        """获取键值（支持自动 JSON 解码）"""
        client = await self._ensure_client()
        val = await client.get(key)
        if not val:
            return None
        if as_json:
            try:
                return json.loads(val)
            except json.JSONDecodeError:
                return val
        return val

    async def delete(self, key: str):
        client = await self._ensure_client()
        await client.delete(key)

    async def getdel(self, key: str):
        """原子地读取并删除（一次性凭证）"""
        client = await self._ensure_client()
        return await client.getdel(key)

    async def publish(self, channel: str, message: Any):
        client = await self._ensure_client()
        if isinstance(message, (dict, list)):
            message = json.dumps(message, ensure_ascii=False)
        await client.publish(channel, message)

    async def close(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("🛑 Redis 已断开连接")


# 单例实例（全局兼容）
rds = RedisClient()
