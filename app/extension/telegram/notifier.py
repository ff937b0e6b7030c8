"""
# @Time    : 2025/11/2 22:38
# @Author  : Pedro
# @File    : notifier.py
# @Software: PyCharm

通知出口
--------------------------------
✅ 运营群通知：Telegram Bot sendMessage（Markdown）
✅ 买家通知：Redis 频道推送（未启用 Redis 时只记日志）
✅ 所有发送失败只记录日志，不影响主流程
"""
from typing import Any, Optional

import httpx
from loguru import logger

from app.config.settings_manager import get_current_settings
from app.extension.redis.redis_client import RedisClient, rds
from app.util.redis_key_schema import redis_channel_account_notify


class Notifier:
    """通知出口基类（测试可替换为记录型实现）"""

    async def notify_operator(self, text: str) -> None:
        raise NotImplementedError

    async def notify_account(self, account_id: int, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class TelegramNotifier(Notifier):

    def __init__(
            self,
            bot_token: Optional[str] = None,
            chat_id: Optional[str] = None,
            redis: Optional[RedisClient] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_current_settings()
        self.bot_token = bot_token or settings.telegram.bot_token
        self.chat_id = chat_id or settings.telegram.chat_id
        self.api_base = settings.telegram.api_base
        self.timeout = settings.telegram.timeout
        self.redis = redis or rds
        self._transport = transport

    # ============================================
    # 📣 运营群
    # ============================================
    async def notify_operator(self, text: str) -> None:
        if not self.bot_token or not self.chat_id:
            logger.info(f"[Notify:operator] {text}")
            return

        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        payload = {"chat_id": self.chat_id, "text": text, "parse_mode": "Markdown"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Telegram 通知发送失败: {e}")

    # ============================================
    # 👤 买家
    # ============================================
    async def notify_account(self, account_id: int, payload: dict[str, Any]) -> None:
        logger.info(f"[Notify:account={account_id}] {payload}")
        if not self.redis.enabled:
            return
        try:
            await self.redis.publish(redis_channel_account_notify(account_id), payload)
        except Exception as e:
            logger.warning(f"⚠️ 买家通知推送失败 account={account_id}: {e}")


_default_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    global _default_notifier
    if _default_notifier is None:
        _default_notifier = TelegramNotifier()
    return _default_notifier


def set_notifier(notifier: Optional[Notifier]) -> None:
    """替换全局通知出口（测试 / 自定义渠道）"""
    global _default_notifier
    _default_notifier = notifier
