"""chat_intake 顶层包。

该包实现店面聊天助手的消息入口管线：输入清洗与校验、
Prompt 注入检测、按身份的滑动窗口限流、语言识别、
生成后端流式输出的聚合与兜底回复，以及对话记录的持久化。
"""

from chat_intake.chat.orchestrator import ChatOrchestrator, OrchestratorConfig

__all__ = ["ChatOrchestrator", "OrchestratorConfig"]
