"""模型服务传输层抽象接口。

上层引擎（InlineCompletionEngine / ChatSession）不直接依赖 httpx，
而是依赖此协议：

- generate(req): 单发补全，返回完整文本。
- stream_chat(req): 流式聊天，按到达顺序逐段产出文本片段。

测试中可以用一个实现了同样方法的假对象替换 OllamaClient。
"""

from typing import AsyncIterator, List, Protocol

from ollama_assist.domain.models import ChatRequest, CompletionRequest, ConversationTurn, ModelInfo


class ModelTransport(Protocol):
    """模型服务客户端协议。"""

    name: str

    async def generate(self, req: CompletionRequest) -> str:
        ...

    async def chat(self, req: ChatRequest) -> ConversationTurn:
        ...

    def stream_chat(self, req: ChatRequest) -> AsyncIterator[str]:
        """执行一次流式对话调用，逐段产出非空文本。"""

        ...

    async def list_models(self) -> List[ModelInfo]:
        ...

    async def is_healthy(self) -> bool:
        ...

    async def aclose(self) -> None:
        ...
