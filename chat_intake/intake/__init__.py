"""消息入口处理：清洗、校验、限流与语言识别。"""

from chat_intake.intake.language import detect_language
from chat_intake.intake.rate_limiter import ChatRateLimitPolicy, SlidingWindowRateLimiter
from chat_intake.intake.sanitizer import sanitize, sanitize_chat_message
from chat_intake.intake.validator import validate

__all__ = [
    "ChatRateLimitPolicy",
    "SlidingWindowRateLimiter",
    "detect_language",
    "sanitize",
    "sanitize_chat_message",
    "validate",
]
