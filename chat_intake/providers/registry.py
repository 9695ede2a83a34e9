"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "storefront-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gemini-1.5-flash"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


# 店面聊天回复要短，max_tokens 控制在 500
GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models={
        "storefront-chat": ModelConfig(
            logical_name="storefront-chat",
            provider_model="gemini-1.5-flash",
            max_tokens=500,
            default_temperature=0.7,
        )
    },
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        "storefront-chat": ModelConfig(
            logical_name="storefront-chat",
            provider_model="gpt-4o-mini",
            max_tokens=500,
            default_temperature=0.7,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "gemini": GEMINI_CONFIG,
    "openai": OPENAI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")


def get_model_config(provider: str, logical_name: str) -> ModelConfig:
    cfg = get_provider_config(provider)
    try:
        return cfg.models[logical_name]
    except KeyError:
        raise KeyError(f"Unknown model {logical_name!r} for provider {cfg.name!r}")
