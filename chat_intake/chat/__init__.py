"""对话编排：流式聚合、兜底回复与单轮处理。"""

from chat_intake.chat.orchestrator import ChatOrchestrator, OrchestratorConfig
from chat_intake.chat.stream_aggregator import StreamAggregator, StreamEvent, TurnState

__all__ = ["ChatOrchestrator", "OrchestratorConfig", "StreamAggregator", "StreamEvent", "TurnState"]
