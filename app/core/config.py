# -*- coding: utf-8 -*-
"""
@Time    : 2025/10/28
@Author  : Pedro
@File    : config.py
@Software: PyCharm

Storefront-Core 配置系统
---------------------------------------------------
✅ 自动加载根目录 .env
✅ YAML 支持 ${ENV_VAR} 占位符解析
✅ 自动根据 APP_ENV 加载 dev.yaml / production.yaml / test.yaml
✅ 深度递归合并配置（不会丢失默认值）
✅ 线程安全单例 + FastAPI 注册

注意：汇率 / 手续费 / 收款地址属于运行期可变配置，存放在 settings 表，
由 RateFeeConfigProvider 读取，这里只保存启动默认值。
"""

import os
import re
import threading
from decimal import Decimal
from functools import lru_cache
from typing import Optional, Any, Dict

import yaml
from dotenv import load_dotenv
from fastapi import FastAPI
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


# ======================================================
# 🔧 加载 .env 文件
# ======================================================
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../../"))
ENV_PATH = os.path.join(BASE_DIR, ".env")
if os.path.exists(ENV_PATH):
    load_dotenv(ENV_PATH, override=True)


# ======================================================
# 🧩 内置基础配置模型
# ======================================================
class AppConfig(BaseModel):
    name: str = "Storefront-Core"
    version: str = "0.1.0"
    env: str = "dev"
    debug: bool = True
    log_level: str = "DEBUG"
    log_path: str = "logs/app_{time:YYYY-MM-DD}.log"
    host: str = "127.0.0.1"
    port: int = 3000


class DatabaseConfig(BaseModel):
    url: str = "sqlite+aiosqlite:///./app.db"
    echo: bool = False
    auto_create: bool = True


class RedisConfig(BaseModel):
    # 为空表示不启用缓存，配置直接读库
    redis_url: Optional[str] = None


class AuthConfig(BaseModel):
    # 运营后台 Bearer Token
    admin_token: str = "change-me"
    # 买家会话 JWT
    secret: str = "Storefront-Core-change-me-0123456789"
    algorithm: str = "HS256"
    access_expires_in: int = 3600
    password_schemes: list[str] = ["argon2"]


class OrderConfig(BaseModel):
    expire_minutes: int = 30


class PricingConfig(BaseModel):
    default_exchange_rate: Decimal = Decimal("7.0")
    default_fee_percent: Decimal = Decimal("0")


class ReferralConfig(BaseModel):
    bonus_rate: Decimal = Decimal("0.05")
    max_retries: int = 3
    retry_delay: float = 0.5


class WithdrawalConfig(BaseModel):
    min_amount: Decimal = Decimal("10")
    fee_fixed: Decimal = Decimal("1")
    fee_percent: Decimal = Decimal("0")


class ReconcilerConfig(BaseModel):
    enabled: bool = True
    interval_seconds: int = 30
    epsilon: Decimal = Decimal("0.000001")


class TronConfig(BaseModel):
    api_base: str = "https://api.trongrid.io"
    api_key: Optional[str] = None
    wallet_address: Optional[str] = None
    usdt_contract: str = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"
    token_decimals: int = 6
    page_limit: int = 20
    timeout: float = 10.0


class TelegramConfig(BaseModel):
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_base: str = "https://api.telegram.org"
    timeout: float = 5.0


# ======================================================
# 🧠 工具函数
# ======================================================
def deep_merge(base: dict, override: dict) -> dict:
    """递归合并字典"""
    result = base.copy()
    for k, v in override.items():
        # 未解析的 ${VAR} 占位符不覆盖默认值
        if v is None:
            continue
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def substitute_env_vars(value: Any) -> Any:
    """解析 ${VAR} 变量"""
    if isinstance(value, str):
        matches = re.findall(r"\$\{([^}^{]+)\}", value)
        for var in matches:
            env_val = os.getenv(var)
            if env_val:
                value = value.replace(f"${{{var}}}", env_val)
            elif value == f"${{{var}}}":
                return None
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


def load_yaml_config(env: str) -> Dict[str, Any]:
    """加载 app/config/{env}.yaml 并解析环境变量"""
    config_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "../config"))
    file_path = os.path.join(config_dir, f"{env}.yaml")
    if not os.path.exists(file_path):
        return {}

    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return substitute_env_vars(data)


# ======================================================
# 🌍 Settings 主配置类
# ======================================================
class Settings(BaseSettings):
    app: AppConfig = AppConfig()
    database: DatabaseConfig = DatabaseConfig()
    redis: RedisConfig = RedisConfig()
    auth: AuthConfig = AuthConfig()
    order: OrderConfig = OrderConfig()
    pricing: PricingConfig = PricingConfig()
    referral: ReferralConfig = ReferralConfig()
    withdrawal: WithdrawalConfig = WithdrawalConfig()
    reconciler: ReconcilerConfig = ReconcilerConfig()
    tron: TronConfig = TronConfig()
    telegram: TelegramConfig = TelegramConfig()

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="allow",
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        env = os.getenv("APP_ENV", self.app.env or "dev")
        yaml_data = load_yaml_config(env)

        # ✅ 自动递归更新现有模块
        for field_name in type(self).model_fields:
            section = yaml_data.get(field_name)
            current_val = getattr(self, field_name)
            if section and isinstance(current_val, BaseModel):
                merged = deep_merge(current_val.model_dump(), section)
                setattr(self, field_name, type(current_val)(**merged))

    def summary(self) -> str:
        """输出配置概要（隐藏密钥）"""
        lines = [f"🌍 [{self.app.env}] {self.app.name}"]
        for name in type(self).model_fields:
            value = getattr(self, name)
            if name in ("auth", "telegram"):
                continue
            if isinstance(value, BaseModel):
                lines.append(f"🧩 {name}: {value.model_dump()}")
        return "\n".join(lines)


# ======================================================
# 🧷 单例实例
# ======================================================
_settings_instance: Optional[Settings] = None
_settings_lock = threading.Lock()


@lru_cache()
def get_settings() -> Settings:
    """加载配置（带缓存）"""
    return Settings()


def get_current_settings() -> Settings:
    """线程安全全局访问"""
    global _settings_instance
    if _settings_instance is None:
        with _settings_lock:
            if _settings_instance is None:
                _settings_instance = get_settings()
    return _settings_instance


def init_settings(app: Optional[FastAPI] = None) -> Settings:
    """注册 FastAPI"""
    settings = get_current_settings()
    if app:
        app.state.settings = settings
    return settings
