"""轻量语言识别：在德语（主）和英语（次）之间二选一。

统计每种语言常用功能词的整词命中数，命中更多的一方胜出，
平局时回落到次语言。不做概率估计，也不会失败。
"""

import re
from typing import Dict, List, Sequence

from chat_intake.domain.models import PRIMARY_LOCALE, SECONDARY_LOCALE, Locale

FUNCTION_WORDS: Dict[Locale, Sequence[str]] = {
    PRIMARY_LOCALE: (
        "ich", "du", "der", "die", "das", "und", "ist", "was", "wo", "wann", "wie",
        "speisekarte", "öffnungszeiten", "angebot",
    ),
    SECONDARY_LOCALE: (
        "i", "you", "the", "is", "what", "where", "when", "and", "how", "can",
        "menu", "hours", "offer",
    ),
}


def _compile(words: Sequence[str]) -> List["re.Pattern[str]"]:
    return [re.compile(rf"\b{re.escape(w)}\b") for w in words]


_PATTERNS = {locale: _compile(words) for locale, words in FUNCTION_WORDS.items()}


def score(text: str) -> Dict[Locale, int]:
    lowered = (text or "").lower()
    return {locale: sum(1 for p in patterns if p.search(lowered)) for locale, patterns in _PATTERNS.items()}


def detect_language(text: str) -> Locale:
    counts = score(text)
    if counts[PRIMARY_LOCALE] > counts[SECONDARY_LOCALE]:
        return PRIMARY_LOCALE
    return SECONDARY_LOCALE
