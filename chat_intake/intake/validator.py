"""输入校验。

所有输入类别共用一个带参数的长度校验器（LengthPolicy），
不同类别只是边界不同，外加可插拔的格式检查：

- 聊天消息：1..2000（清洗时做注入检测）
- 搜索词：1..200
- 显示名称：1..100
- 邮箱：最长 254，需符合邮箱语法，并统一转为小写
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from chat_intake.config.settings import settings
from chat_intake.domain.outcomes import Accepted, ErrorKind, Rejected, ValidationOutcome
from chat_intake.infrastructure.logging.logger import logger, preview
from chat_intake.intake.sanitizer import sanitize, sanitize_chat_message

_log = logger.getChild("validator")

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


def is_email(text: str) -> bool:
    try:
        _EMAIL_ADAPTER.validate_python(text)
    except PydanticValidationError:
        return False
    return True


@dataclass(frozen=True)
class LengthPolicy:
    """一类输入的校验配置。

    Attributes:
        name: 输入类别名，用于日志。
        min_length / max_length: 去除首尾空白后的长度区间（闭区间）。
        format_check: 可选的格式检查，返回 False 时拒绝为 InvalidFormat。
        casefold: 通过后是否转为小写。
    """

    name: str
    min_length: int
    max_length: int
    format_check: Optional[Callable[[str], bool]] = None
    casefold: bool = False


CHAT_MESSAGE_POLICY = LengthPolicy("chat_message", settings.chat_min_length, settings.chat_max_length)
SEARCH_QUERY_POLICY = LengthPolicy("search_query", 1, 200)
DISPLAY_NAME_POLICY = LengthPolicy("display_name", 1, 100)
EMAIL_POLICY = LengthPolicy("email", 1, 254, format_check=is_email, casefold=True)


def check_policy(text: str, policy: LengthPolicy) -> ValidationOutcome:
    """对已清洗的文本应用长度与格式规则。"""

    trimmed = text.strip()
    if len(trimmed) < policy.min_length:
        return Rejected(ErrorKind.TOO_SHORT)
    if len(trimmed) > policy.max_length:
        return Rejected(ErrorKind.TOO_LONG)
    if policy.casefold:
        trimmed = trimmed.lower()
    if policy.format_check is not None and not policy.format_check(trimmed):
        return Rejected(ErrorKind.INVALID_FORMAT)
    return Accepted(trimmed)


def validate(text: str, identity: Optional[str] = None) -> ValidationOutcome:
    """校验聊天消息：先清洗（含注入检测），再检查长度。"""

    if not isinstance(text, str):
        return Rejected(ErrorKind.INVALID_TYPE)
    outcome = check_policy(sanitize_chat_message(text, identity), CHAT_MESSAGE_POLICY)
    if isinstance(outcome, Rejected):
        _log.info(
            "Chat message validation failed",
            extra={"extra": {"kind": outcome.kind.value, "message": preview(sanitize(text), 50)}},
        )
    return outcome


def validate_with(text: str, policy: LengthPolicy) -> ValidationOutcome:
    if not isinstance(text, str):
        return Rejected(ErrorKind.INVALID_TYPE)
    return check_policy(sanitize(text), policy)


def validate_search_query(query: str) -> ValidationOutcome:
    return validate_with(query, SEARCH_QUERY_POLICY)


def validate_display_name(name: str) -> ValidationOutcome:
    return validate_with(name, DISPLAY_NAME_POLICY)


def validate_email(email: str) -> ValidationOutcome:
    return validate_with(email, EMAIL_POLICY)


def validate_profile(name: str, email: str) -> Tuple[Optional[Tuple[str, str]], Optional[Tuple[str, ErrorKind]]]:
    """校验资料表单，返回 ((name, email), None) 或 (None, (字段名, 错误类型))。"""

    name_outcome = validate_display_name(name)
    if isinstance(name_outcome, Rejected):
        _log.info("Profile validation failed", extra={"extra": {"field": "name", "kind": name_outcome.kind.value}})
        return None, ("name", name_outcome.kind)
    email_outcome = validate_email(email)
    if isinstance(email_outcome, Rejected):
        _log.info("Profile validation failed", extra={"extra": {"field": "email", "kind": email_outcome.kind.value}})
        return None, ("email", email_outcome.kind)
    return (name_outcome.text, email_outcome.text), None


def is_length_valid(text: str, min_length: int, max_length: int) -> bool:
    length = len(text.strip())
    return min_length <= length <= max_length


def truncate_string(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max(0, max_length - 3)] + "..."
