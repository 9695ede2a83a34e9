"""单轮流式输出聚合器。

状态机：IDLE -> STREAMING -> {COMPLETE, FAILED, CANCELLED}

- consume(chunk)：按到达顺序追加增量，并把当前累计文本推送给 sink（partial 事件），
  供前端实时刷新。
- complete()：冻结最终文本；没有任何文本时按失败处理。
- fail()：用本地化兜底回复替换累计文本，并且只向 sink 推送一次。
- cancel()：调用方放弃本轮，之后的增量不再生效，结果标记为不完整。

只有第一次终止转换生效，后续终止调用都是空操作，
因此 sink 恰好观察到一个终止事件。sink 抛出的异常只记日志，不影响状态。
每个实例只服务一轮对话，不跨轮共享。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Literal, Optional

from chat_intake.chat.messages import fallback_message
from chat_intake.domain.models import Locale
from chat_intake.infrastructure.logging.logger import logger


class TurnState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({TurnState.COMPLETE, TurnState.FAILED, TurnState.CANCELLED})


@dataclass(frozen=True)
class StreamEvent:
    """推送给 sink 的事件。

    kind:
        - "partial": 收到新增量，text 为当前累计文本，delta 为本次增量。
        - "complete": 正常结束，text 为最终文本。
        - "failed": 后端失败，text 为兜底回复。
        - "cancelled": 调用方取消，text 为取消时的不完整文本。
    """

    kind: Literal["partial", "complete", "failed", "cancelled"]
    turn_id: str
    text: str
    delta: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.kind != "partial"


StreamSink = Callable[[StreamEvent], None]


class StreamAggregator:
    def __init__(self, turn_id: str, locale: Locale, sink: Optional[StreamSink] = None):
        self.turn_id = turn_id
        self.locale = locale
        self._sink = sink
        self._pieces: List[str] = []
        self._state = TurnState.IDLE
        self._final_text: Optional[str] = None
        self.failure_reason: Optional[str] = None

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def is_incomplete(self) -> bool:
        return self._state is TurnState.CANCELLED

    @property
    def text(self) -> str:
        if self._final_text is not None:
            return self._final_text
        return "".join(self._pieces)

    def consume(self, chunk: str) -> bool:
        """追加一段增量，终止后调用返回 False 且不产生任何效果。"""

        if self.is_terminal:
            return False
        self._state = TurnState.STREAMING
        if not chunk:
            return True
        self._pieces.append(chunk)
        self._emit("partial", self.text, delta=chunk)
        return True

    def complete(self) -> str:
        if self.is_terminal:
            return self.text
        final = "".join(self._pieces)
        if not final.strip():
            return self.fail("EMPTY_RESPONSE")
        self._final_text = final
        self._state = TurnState.COMPLETE
        self._emit("complete", final)
        return final

    def fail(self, reason: Optional[str] = None) -> str:
        if self.is_terminal:
            return self.text
        self.failure_reason = reason or "BACKEND_ERROR"
        self._final_text = fallback_message(self.locale)
        self._state = TurnState.FAILED
        logger.getChild("stream").info(
            "Turn failed, using fallback",
            extra={"extra": {"turn_id": self.turn_id, "reason": self.failure_reason, "locale": self.locale}},
        )
        self._emit("failed", self._final_text)
        return self._final_text

    def cancel(self) -> str:
        if self.is_terminal:
            return self.text
        self._final_text = "".join(self._pieces)
        self._state = TurnState.CANCELLED
        self._emit("cancelled", self._final_text)
        return self._final_text

    def _emit(self, kind, text: str, delta: str = "") -> None:
        if self._sink is None:
            return
        try:
            self._sink(StreamEvent(kind=kind, turn_id=self.turn_id, text=text, delta=delta))
        except Exception:  # 调用方回调出错不改变本轮状态
            logger.getChild("stream").exception(
                "Stream sink raised",
                extra={"extra": {"turn_id": self.turn_id, "event": kind}},
            )
