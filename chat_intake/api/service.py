"""对外 API 服务模块。

提供简化的函数接口供上层应用（聊天页面）调用，返回可直接序列化的字典。
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Event
from typing import Any, Callable, Dict, List, Optional

from chat_intake.chat.messages import quick_actions
from chat_intake.chat.orchestrator import ChatOrchestrator
from chat_intake.chat.stream_aggregator import StreamEvent
from chat_intake.config.settings import settings
from chat_intake.domain.conversation import TurnStore
from chat_intake.domain.outcomes import TurnCancelled, TurnCompleted, TurnOutcome, TurnRateLimited, TurnRejected
from chat_intake.infrastructure.logging.logger import logger, redact_identity
from chat_intake.infrastructure.storage.json_store import JsonTurnStore
from chat_intake.intake.rate_limiter import ChatRateLimitPolicy, chat_rate_limiter
from chat_intake.providers import create_provider


_store: Optional[TurnStore] = None
_orchestrator: Optional[ChatOrchestrator] = None
_executor: Optional[ThreadPoolExecutor] = None


def get_default_orchestrator() -> ChatOrchestrator:
    """获取默认的 ChatOrchestrator 实例（单例）。"""
    global _store, _orchestrator, _executor
    if _store is None:
        _store = JsonTurnStore(root=settings.storage_root)
    if _executor is None and settings.persist_in_background:
        _executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="chat-persist")
    if _orchestrator is None:
        _orchestrator = ChatOrchestrator(
            store=_store,
            provider_client=create_provider(),
            rate_limit=ChatRateLimitPolicy(chat_rate_limiter),
            executor=_executor,
        )
    return _orchestrator


def outcome_to_dict(outcome: TurnOutcome) -> Dict[str, Any]:
    if isinstance(outcome, TurnRejected):
        return {"status": "rejected", "error": outcome.kind.value, "message": outcome.message}
    if isinstance(outcome, TurnRateLimited):
        return {"status": "rate_limited", "remaining": outcome.remaining, "message": outcome.message}
    if isinstance(outcome, TurnCancelled):
        return {
            "status": "cancelled",
            "turn_id": outcome.turn_id,
            "text": outcome.partial_text,
            "locale": outcome.locale,
            "incomplete": True,
        }
    if isinstance(outcome, TurnCompleted):
        return {
            "status": "completed",
            "turn_id": outcome.turn_id,
            "text": outcome.text,
            "locale": outcome.locale,
            "degraded": outcome.degraded,
        }
    raise TypeError(f"Unknown outcome: {outcome!r}")


def send_chat_message(
    text: str,
    identity: str,
    on_chunk: Optional[Callable[[StreamEvent], None]] = None,
    orchestrator: Optional[ChatOrchestrator] = None,
    cancel_event: Optional[Event] = None,
) -> Dict[str, Any]:
    """处理一条聊天消息。

    Args:
        text: 用户输入内容
        identity: 用户 id 或访客 token
        on_chunk: 增量回调（可选），用于实时刷新界面
        orchestrator: 指定编排器（可选，默认使用单例）
        cancel_event: 调用方放弃本轮时 set()，返回 status 为 cancelled

    Returns:
        包含 status 以及 text/locale/remaining/error 等字段的字典
    """
    orch = orchestrator or get_default_orchestrator()
    outcome = orch.handle_turn(text, identity, on_chunk=on_chunk, cancel_event=cancel_event)
    result = outcome_to_dict(outcome)
    logger.info(
        "Chat message handled",
        extra={"extra": {"identity": redact_identity(identity), "status": result["status"]}},
    )
    return result


def get_chat_history(identity: str, limit: int = 50, orchestrator: Optional[ChatOrchestrator] = None) -> List[Dict[str, Any]]:
    """获取最近的对话记录，按时间正序。"""
    orch = orchestrator or get_default_orchestrator()
    return [
        {
            "id": t.id,
            "message": t.user_text,
            "response": t.response_text,
            "language": t.locale,
            "created_at": t.created_at.isoformat(),
        }
        for t in orch.history(identity, limit)
    ]


def clear_chat_history(identity: str, orchestrator: Optional[ChatOrchestrator] = None) -> bool:
    orch = orchestrator or get_default_orchestrator()
    return orch.clear_history(identity)


def get_remaining_chat_messages(identity: str, orchestrator: Optional[ChatOrchestrator] = None) -> int:
    orch = orchestrator or get_default_orchestrator()
    return orch.rate_limit.remaining(identity)


def get_quick_actions(locale: str) -> List[str]:
    return quick_actions(locale)
