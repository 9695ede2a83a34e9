from dataclasses import dataclass
from datetime import datetime
from typing import List, Protocol

from .models import Locale


@dataclass(frozen=True)
class ConversationTurn:
    id: str
    identity: str
    user_text: str
    response_text: str
    locale: Locale
    created_at: datetime


class TurnStore(Protocol):
    def append(self, identity: str, user_text: str, response_text: str, locale: Locale) -> ConversationTurn:
        ...

    def list_recent(self, identity: str, limit: int) -> List[ConversationTurn]:
        ...

    def clear(self, identity: str) -> None:
        ...
