"""Ollama Assist 顶层包。

该包把编辑器状态（光标、选中内容、聊天记录）转换成对本地模型服务
（Ollama）的请求，并把单发或流式的响应转换回编辑器可见的状态：
行内补全引擎、聊天会话引擎、传输层、提示词构造与配置加载。
"""

from ollama_assist.api.service import AssistantService, create_service

__all__ = ["AssistantService", "create_service"]
