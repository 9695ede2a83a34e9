"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
优先级：构造参数 > 环境变量 > .env > config.yaml > secrets 目录。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_INTAKE_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 生成后端 ----
    default_provider: str = Field(
        default="gemini",
        description="默认使用的 Provider 名称：gemini 或 openai",
    )
    default_model: str = Field(
        default="storefront-chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI 兼容接口的 API 密钥")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI 兼容接口的基础URL",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    turn_timeout: float = Field(
        default=60.0,
        ge=1.0,
        description="单轮对话的截止时间（秒），超时后返回兜底回复",
    )

    # ---- 存储与日志 ----
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    persist_in_background: bool = Field(
        default=True,
        description="是否在后台线程中写入对话记录",
    )

    # ---- 输入校验与限流 ----
    chat_min_length: int = Field(default=1, ge=1, description="聊天消息最小长度")
    chat_max_length: int = Field(default=2000, ge=1, description="聊天消息最大长度")
    chat_rate_limit_messages: int = Field(default=10, ge=1, description="每个窗口内允许的消息数")
    chat_rate_limit_window_ms: int = Field(default=60_000, ge=1, description="限流窗口（毫秒）")
    max_context_turns: int = Field(default=5, ge=0, le=50, description="带入请求的历史轮数")
    injection_patterns_file: Optional[str] = Field(
        default=None,
        description="Prompt 注入检测规则文件（YAML），为空时使用内置规则",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("default_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        name = v.lower()
        if name not in {"gemini", "openai"}:
            raise ValueError(f"Unknown provider: {v!r}")
        return name

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
