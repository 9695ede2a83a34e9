"""领域层模型与协议。

包含：
- models: 统一的 ChatMessage / ChatRequest / ChatResult 模型与 Locale 定义。
- outcomes: 校验结果与单轮对话结果。
- conversation: ConversationTurn 与 TurnStore 抽象。
- exceptions: 业务异常类型定义。
"""
