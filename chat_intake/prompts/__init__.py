"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale>/ 目录读取 system prompt 文本，
用于构造 ChatMessage(role="system")。
"""

from functools import lru_cache
from pathlib import Path

from chat_intake.domain.models import PRIMARY_LOCALE, SUPPORTED_LOCALES


PROMPTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def load_system_prompt(locale: str = PRIMARY_LOCALE, name: str = "storefront_system") -> str:
    """根据语言加载系统提示词文本，未知语言回落到主语言。"""

    if locale not in SUPPORTED_LOCALES:
        locale = PRIMARY_LOCALE
    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8")
