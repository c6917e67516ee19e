"""领域层模型与协议。

包含：
- models: Role / ConversationTurn / 请求与补全结果等数据模型。
- conversation: 有界对话历史 ConversationHistory。
- document: 文档快照与光标上下文提取。
- exceptions: 业务异常类型定义。
"""
