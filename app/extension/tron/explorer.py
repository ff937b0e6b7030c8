"""
# @Time    : 2025/10/28 19:43
# @Author  : Pedro
# @File    : explorer.py
# @Software: PyCharm

TronGrid TRC-20 转账查询（对账任务的付款凭证源）
--------------------------------
只读、不可信、可能延迟、可能限流：
任何失败都抛 ExternalSourceError，由对账任务决定跳过本轮，
绝不把“源不可用”当成“未到账”。
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx
from loguru import logger

from app.config.settings_manager import get_current_settings
from app.core.exception import ExternalSourceError


@dataclass(frozen=True)
class Transfer:
    """一笔入账转账"""
    tx_id: str
    amount: Decimal
    timestamp: datetime
    from_address: Optional[str] = None
    to_address: Optional[str] = None


class EvidenceSource:
    """付款凭证源接口（测试可注入假实现）"""

    async def fetch_recent_transfers(self, address: str) -> list[Transfer]:
        raise NotImplementedError


class TronGridClient(EvidenceSource):

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = get_current_settings()
        self.api_base = settings.tron.api_base.rstrip("/")
        self.api_key = settings.tron.api_key
        self.contract = settings.tron.usdt_contract
        self.decimals = settings.tron.token_decimals
        self.limit = settings.tron.page_limit
        self.timeout = settings.tron.timeout
        self._transport = transport

    async def fetch_recent_transfers(self, address: str) -> list[Transfer]:
        url = f"{self.api_base}/v1/accounts/{address}/transactions/trc20"
        params = {
            "limit": self.limit,
            "contract_address": self.contract,
            "only_to": "true",
        }
        headers = {"TRON-PRO-API-KEY": self.api_key} if self.api_key else {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise ExternalSourceError(f"TronGrid 请求失败: {e}") from e

        if resp.status_code == 429:
            raise ExternalSourceError("TronGrid 限流", status_code=429)
        if resp.status_code != 200:
            raise ExternalSourceError(f"TronGrid 返回异常状态 {resp.status_code}", status_code=resp.status_code)

        try:
            body = resp.json()
        except ValueError as e:
            raise ExternalSourceError("TronGrid 返回非 JSON 内容") from e

        if not isinstance(body, dict) or body.get("success") is False:
            raise ExternalSourceError(f"TronGrid 返回失败: {body!r:.200}")

        return self._parse(body.get("data") or [], address)

    def _parse(self, rows: list, address: str) -> list[Transfer]:
        transfers = []
        for row in rows:
            try:
                if row.get("to") and row["to"] != address:
                    continue
                decimals = int((row.get("token_info") or {}).get("decimals", self.decimals))
                amount = Decimal(str(row["value"])) / (Decimal(10) ** decimals)
                ts = datetime.fromtimestamp(int(row["block_timestamp"]) / 1000, tz=timezone.utc)
                transfers.append(Transfer(
                    tx_id=row["transaction_id"],
                    amount=amount,
                    timestamp=ts,
                    from_address=row.get("from"),
                    to_address=row.get("to"),
                ))
            except (KeyError, TypeError, ValueError, InvalidOperation) as e:
                # 单条脏数据不影响其它记录
                logger.warning(f"⚠️ 跳过无法解析的转账记录: {e} row={row!r:.200}")
        return transfers
