"""单轮对话编排。

handle_turn 的处理顺序（遇到第一个失败即返回）：
清洗 -> 校验 -> 语言识别 -> 限流 -> 调用生成后端并把增量交给本轮的 StreamAggregator
-> 后端失败时替换为本地化兜底回复（仍然是 TurnCompleted）
-> 尽力写入存储，写入失败只记日志，不影响本轮结果。
"""

import logging
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from threading import Event
from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from chat_intake.chat.messages import rate_limit_message, validation_message
from chat_intake.chat.stream_aggregator import StreamAggregator, StreamSink, TurnState
from chat_intake.config.settings import settings
from chat_intake.domain.conversation import ConversationTurn, TurnStore
from chat_intake.domain.exceptions import (
    BackendError,
    BackendTimeoutError,
    EmptyResponseError,
    PersistenceError,
    RateLimitError,
)
from chat_intake.domain.models import PRIMARY_LOCALE, ChatMessage, ChatRequest, ChatStreamChunk, Locale
from chat_intake.domain.outcomes import (
    Rejected,
    TurnCancelled,
    TurnCompleted,
    TurnOutcome,
    TurnRateLimited,
    TurnRejected,
)
from chat_intake.infrastructure.logging.logger import logger, preview, redact_identity
from chat_intake.intake.language import detect_language
from chat_intake.intake.rate_limiter import ChatRateLimitPolicy, SlidingWindowRateLimiter
from chat_intake.intake.sanitizer import sanitize
from chat_intake.intake.validator import CHAT_MESSAGE_POLICY, validate
from chat_intake.prompts import load_system_prompt
from chat_intake.providers.base import ProviderClient


@dataclass
class OrchestratorConfig:
    provider: str
    model: str = "storefront-chat"
    temperature: float = 0.7
    max_context_turns: int = 5
    turn_timeout: float = 60.0  # 秒，从开始调用后端算起
    stream: bool = True


class ChatOrchestrator:
    def __init__(
        self,
        store: TurnStore,
        provider_client: ProviderClient,
        rate_limit: Optional[ChatRateLimitPolicy] = None,
        config: Optional[OrchestratorConfig] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._provider_client = provider_client
        self._rate_limit = rate_limit or ChatRateLimitPolicy(SlidingWindowRateLimiter())
        self._config = config or OrchestratorConfig(
            provider=provider_client.name,
            model=settings.default_model,
            max_context_turns=settings.max_context_turns,
            turn_timeout=settings.turn_timeout,
        )
        # executor 为空时在当前线程内同步写入
        self._executor = executor
        self._clock = clock

    @property
    def rate_limit(self) -> ChatRateLimitPolicy:
        return self._rate_limit

    def handle_turn(
        self,
        raw_input: str,
        identity: str,
        on_chunk: Optional[StreamSink] = None,
        cancel_event: Optional[Event] = None,
    ) -> TurnOutcome:
        """处理一轮用户消息。

        Args:
            raw_input: 未经处理的用户输入。
            identity: 限流与存储使用的身份标识（用户 id 或访客 token）。
            on_chunk: 可选的增量回调，收到 partial 事件若干次，最后恰好一个终止事件。
            cancel_event: 调用方放弃本轮时 set()，之后的增量不再生效且不写入存储。

        Returns:
            TurnRejected / TurnRateLimited / TurnCompleted / TurnCancelled 之一。
        """

        turn_id = f"turn-{uuid4().hex}"
        log_ctx: Dict[str, Any] = {"turn_id": turn_id, "identity": redact_identity(identity)}

        # 1. 清洗 + 校验
        outcome = validate(raw_input, identity)
        if isinstance(outcome, Rejected):
            locale = self._locale_for_message(raw_input)
            self._log(logging.INFO, "Turn rejected", log_ctx, kind=outcome.kind.value)
            return TurnRejected(
                kind=outcome.kind,
                message=validation_message(outcome.kind, locale, max_length=CHAT_MESSAGE_POLICY.max_length),
            )
        text = outcome.text
        locale = detect_language(text)
        log_ctx["locale"] = locale

        # 2. 限流（锁只在 admit 内部持有，不跨越后端调用）
        try:
            self._rate_limit.check(identity)
        except RateLimitError as e:
            self._log(logging.WARNING, "Turn rate limited", log_ctx, remaining=e.remaining)
            return TurnRateLimited(
                remaining=e.remaining,
                message=rate_limit_message(e.remaining, self._rate_limit.max_attempts, locale),
            )

        # 3. 调用后端
        aggregator = StreamAggregator(turn_id, locale, sink=on_chunk)
        request = self._build_request(identity, text, locale, log_ctx)
        start_time = self._clock()
        self._dispatch(request, aggregator, cancel_event, log_ctx)

        if aggregator.state is TurnState.CANCELLED:
            self._log(logging.INFO, "Turn cancelled", log_ctx, partial_length=len(aggregator.text))
            return TurnCancelled(turn_id=turn_id, partial_text=aggregator.text, locale=locale)

        final_text = aggregator.text
        degraded = aggregator.state is TurnState.FAILED

        # 4. 尽力持久化
        self._persist(identity, text, final_text, locale, log_ctx)

        self._log(
            logging.INFO,
            "Completed turn",
            log_ctx,
            degraded=degraded,
            elapsed_seconds=round(self._clock() - start_time, 2),
        )
        return TurnCompleted(text=final_text, locale=locale, turn_id=turn_id, degraded=degraded)

    def history(self, identity: str, limit: int = 50) -> List[ConversationTurn]:
        try:
            return self._store.list_recent(identity, limit)
        except PersistenceError as e:
            self._log(logging.ERROR, "Failed to load chat history", {"identity": redact_identity(identity)}, error=e.code)
            return []

    def clear_history(self, identity: str) -> bool:
        try:
            self._store.clear(identity)
        except PersistenceError as e:
            self._log(logging.ERROR, "Failed to clear chat history", {"identity": redact_identity(identity)}, error=e.code)
            return False
        return True

    # ---- 内部步骤 ----

    def _build_request(self, identity: str, text: str, locale: Locale, log_ctx: Dict[str, Any]) -> ChatRequest:
        messages = [ChatMessage(role="system", content=load_system_prompt(locale))]
        if self._config.max_context_turns > 0:
            for turn in self.history(identity, self._config.max_context_turns):
                messages.append(ChatMessage(role="user", content=turn.user_text))
                messages.append(ChatMessage(role="assistant", content=turn.response_text))
        messages.append(ChatMessage(role="user", content=text, meta={"locale": locale, "turn_id": log_ctx["turn_id"]}))
        return ChatRequest(
            provider=self._config.provider,
            model=self._config.model,
            messages=messages,
            temperature=self._config.temperature,
        )

    def _dispatch(
        self,
        request: ChatRequest,
        aggregator: StreamAggregator,
        cancel_event: Optional[Event],
        log_ctx: Dict[str, Any],
    ) -> None:
        """把后端输出交给 aggregator，保证返回时 aggregator 已处于终止状态。"""

        self._log(
            logging.INFO,
            "Calling provider",
            log_ctx,
            provider=self._config.provider,
            model=self._config.model,
            message_count=len(request.messages),
            stream=self._config.stream,
        )
        deadline = self._clock() + self._config.turn_timeout
        stream: Optional[Iterable[ChatStreamChunk]] = None
        try:
            if not self._config.stream:
                if self._cancelled(cancel_event):
                    aggregator.cancel()
                    return
                result = self._provider_client.chat(request)
                if self._clock() > deadline:
                    raise BackendTimeoutError(code="TURN_TIMEOUT", message="turn exceeded deadline")
                aggregator.consume(result.text)
            else:
                stream = iter(self._provider_client.chat_stream(request))
                for chunk in stream:
                    if self._cancelled(cancel_event):
                        aggregator.cancel()
                        return
                    if self._clock() > deadline:
                        raise BackendTimeoutError(code="TURN_TIMEOUT", message="turn exceeded deadline")
                    aggregator.consume(chunk.text)
            if self._cancelled(cancel_event):
                aggregator.cancel()
                return
            if not aggregator.text.strip():
                raise EmptyResponseError(code="EMPTY_RESPONSE", message="provider returned no text")
            aggregator.complete()
        except BackendError as e:
            self._log(logging.ERROR, "Provider call failed", log_ctx, error=e.code, detail=preview(e.message, 200))
            aggregator.fail(e.code)
        except Exception as e:  # 任何后端异常都以兜底回复结束本轮
            logger.exception("Unexpected provider failure", extra={"extra": dict(log_ctx)})
            aggregator.fail(type(e).__name__)
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

    def _persist(self, identity: str, user_text: str, response_text: str, locale: Locale, log_ctx: Dict[str, Any]) -> None:
        def write() -> None:
            try:
                self._store.append(identity, user_text, response_text, locale)
            except PersistenceError as e:
                self._log(logging.ERROR, "Failed to store turn", log_ctx, error=e.code)
            except Exception:  # 存储失败不能影响本轮结果
                logger.exception("Unexpected store failure", extra={"extra": dict(log_ctx)})

        if self._executor is not None:
            self._executor.submit(write)
        else:
            write()

    @staticmethod
    def _cancelled(cancel_event: Optional[Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    @staticmethod
    def _locale_for_message(raw_input: Any) -> Locale:
        if not isinstance(raw_input, str):
            return PRIMARY_LOCALE
        cleaned = sanitize(raw_input)
        return detect_language(cleaned) if cleaned else PRIMARY_LOCALE

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
