"""
# @Time    : 2025/11/16 13:10
# @Author  : Pedro
# @File    : command_service.py
# @Software: PyCharm

运营群文字指令
--------------------------------
设置汇率 7.2 / 设置手续费 3
/confirm <单号> [force]   /reject <单号> [原因]
/wok <提现ID>             /wno <提现ID> [原因]
/sc [确认码]  删除所有订单   /qc [确认码]  清空全站数据
/bz 帮助
无法识别的文字返回空字符串（不回复）
"""
from decimal import Decimal, InvalidOperation

from loguru import logger

from app.api.cms.services.operator_service import FULL_RESET, WIPE_ORDERS, DANGER_CODE_TTL, OperatorService
from app.core.exception import APIException

HELP_TEXT = """🤖 **机器人指令说明**
---------------------------
Set Rate: 设置汇率 7.2
Set Fee:  设置手续费 3 (即3%)
---------------------------
/confirm 单号 -> 确认收款（过期订单加 force）
/reject 单号 原因 -> 驳回付款凭证
/wok 提现ID -> 确认提现已打款
/wno 提现ID 原因 -> 驳回提现并退回余额
/sc  -> 删除所有订单（需二次确认）
/qc  -> 清空全站数据（需二次确认，慎用）
/bz  -> 显示此帮助"""


class CommandService:

    def __init__(self, operator: OperatorService):
        self.operator = operator

    async def handle(self, text: str) -> str:
        text = (text or "").strip()
        if not text:
            return ""
        try:
            return await self._dispatch(text)
        except APIException as e:
            return f"❌ 操作失败: {e.msg}"
        except (InvalidOperation, ValueError):
            return "❌ 参数格式错误，发送 /bz 查看用法"

    async def _dispatch(self, text: str) -> str:
        parts = text.split()
        head, args = parts[0], parts[1:]

        if head == "设置汇率" and args:
            config = await self.operator.update_config(rate=Decimal(args[0]))
            return f"✅ 汇率已更新为: 1 USDT = {config.rate} CNY"

        if head == "设置手续费" and args:
            config = await self.operator.update_config(fee_percent=Decimal(args[0]))
            return f"✅ 支付手续费已更新为: {config.fee_percent}%"

        if head == "/bz":
            return HELP_TEXT

        if head == "/confirm" and args:
            force = len(args) > 1 and args[1].lower() == "force"
            result = await self.operator.confirm_payment(args[0], allow_expired=force)
            return f"✅ 订单 {args[0]} 已确认收款" if result.changed else f"ℹ️ {result.message}（{result.status}）"

        if head == "/reject" and args:
            result = await self.operator.reject_payment(args[0], " ".join(args[1:]) or None)
            return f"↩️ 订单 {args[0]} 凭证已驳回" if result.changed else f"ℹ️ {result.message}"

        if head == "/wok" and args:
            result = await self.operator.confirm_withdrawal(int(args[0]))
            return f"✅ 提现 #{args[0]} 已确认打款" if result.changed else f"ℹ️ {result.message}"

        if head == "/wno" and args:
            result = await self.operator.reject_withdrawal(int(args[0]), " ".join(args[1:]) or None)
            return f"↩️ 提现 #{args[0]} 已驳回，余额已退回" if result.changed else f"ℹ️ {result.message}"

        if head in ("/sc", "/qc"):
            action = WIPE_ORDERS if head == "/sc" else FULL_RESET
            if not args:
                code = await self.operator.request_danger(action)
                what = "删除所有订单" if action == WIPE_ORDERS else "清空全站数据"
                return f"⚠️ 即将{what}，请在 {DANGER_CODE_TTL} 秒内发送 `{head} {code}` 确认"
            await self.operator.execute_danger(action, args[0])
            logger.warning(f"💥 运营指令执行 {head}")
            if action == WIPE_ORDERS:
                return "🗑️ 所有订单及物流信息已清除。"
            return "💥 数据库已完全清空 (商品/订单/流水/提现/用户)。"

        return ""
