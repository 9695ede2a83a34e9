"""校验结果与单轮对话结果。

- ValidationOutcome = Accepted | Rejected
- TurnOutcome = TurnRejected | TurnRateLimited | TurnCompleted | TurnCancelled
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .models import Locale


class ErrorKind(str, Enum):
    TOO_SHORT = "TooShort"
    TOO_LONG = "TooLong"
    INVALID_FORMAT = "InvalidFormat"
    INVALID_TYPE = "InvalidType"


@dataclass(frozen=True)
class Accepted:
    """校验通过，text 为清洗并去除首尾空白后的文本。"""

    text: str

    @property
    def is_valid(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    kind: ErrorKind

    @property
    def is_valid(self) -> bool:
        return False


ValidationOutcome = Union[Accepted, Rejected]


@dataclass(frozen=True)
class TurnRejected:
    """输入未通过校验。message 为已本地化的提示。"""

    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class TurnRateLimited:
    remaining: int
    message: str


@dataclass(frozen=True)
class TurnCompleted:
    """本轮已得到回复。

    degraded 为 True 表示后端失败，text 是本地化兜底回复。
    """

    text: str
    locale: Locale
    turn_id: str
    degraded: bool = False


@dataclass(frozen=True)
class TurnCancelled:
    """调用方放弃了本轮；partial_text 仅供展示，不会被持久化。"""

    turn_id: str
    partial_text: str
    locale: Optional[Locale] = None


TurnOutcome = Union[TurnRejected, TurnRateLimited, TurnCompleted, TurnCancelled]
