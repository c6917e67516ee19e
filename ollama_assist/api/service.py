"""对外 API 服务模块。

为编辑器侧（命令、状态栏、聊天面板等）提供一个门面：
补全、聊天、编辑器命令、连通性检查都从这里进入核心组件。
"""

from typing import Any, Dict, List, Optional

from ollama_assist.agents.chat_agent import ChatSession, UpdateListener
from ollama_assist.agents.completion_agent import CancellationToken, InlineCompletionEngine
from ollama_assist.config.settings import AssistConfig, AssistSettings, settings
from ollama_assist.domain.document import TextDocument
from ollama_assist.domain.exceptions import TransportError
from ollama_assist.domain.models import ConversationTurn, InlineSuggestion, ModelInfo, Position
from ollama_assist.infrastructure.logging.logger import logger
from ollama_assist.prompts import docstring_prompt, explain_code_prompt, improve_code_prompt, question_prompt
from ollama_assist.providers.ollama_client import OllamaClient


class AssistantService:
    """编辑器与核心组件之间的门面。

    配置以 AssistConfig 显式传入，update_config() 会同步下发给
    传输层、补全引擎与聊天会话。
    """

    def __init__(
        self,
        config: AssistConfig,
        transport: Optional[OllamaClient] = None,
        on_chat_update: Optional[UpdateListener] = None,
    ):
        self._config = config
        self.transport = transport or OllamaClient(config)
        self.completions = InlineCompletionEngine(self.transport, config)
        self.chat = ChatSession(self.transport, config, on_update=on_chat_update)

    @property
    def config(self) -> AssistConfig:
        return self._config

    def update_config(self, config: AssistConfig) -> None:
        self._config = config
        self.transport.update_config(config)
        self.completions.update_config(config)
        self.chat.update_config(config)

    # ---- 行内补全 ----

    async def provide_inline_completion(
        self,
        document: TextDocument,
        position: Position,
        token: Optional[CancellationToken] = None,
    ) -> Optional[InlineSuggestion]:
        return await self.completions.provide(document, position, token)

    def toggle_completions(self) -> bool:
        enabled = self.completions.toggle()
        logger.info("Toggled inline completions", extra={"extra": {"enabled": enabled}})
        return enabled

    # ---- 聊天 ----

    async def send_chat(self, message: str) -> Optional[ConversationTurn]:
        return await self.chat.send(message)

    def clear_chat(self) -> None:
        self.chat.clear()

    # ---- 编辑器命令：把选中的代码包装成提示词后直接发到聊天 ----

    async def explain_code(self, selection: str, language: str) -> Optional[ConversationTurn]:
        if not selection.strip():
            return None
        return await self.chat.send(explain_code_prompt(selection, language))

    async def improve_code(self, selection: str, language: str) -> Optional[ConversationTurn]:
        if not selection.strip():
            return None
        return await self.chat.send(improve_code_prompt(selection, language))

    async def generate_docstring(self, selection: str, language: str) -> Optional[ConversationTurn]:
        if not selection.strip():
            return None
        return await self.chat.send(docstring_prompt(selection, language))

    async def ask_question(
        self,
        question: str,
        selection: Optional[str] = None,
        language: str = "plaintext",
    ) -> Optional[ConversationTurn]:
        if not question.strip():
            return None
        return await self.chat.send(question_prompt(question, selection, language))

    # ---- 模型服务状态 ----

    async def check_connection(self) -> Dict[str, Any]:
        """连通性与模型数量；供状态栏/提示框展示。"""

        status: Dict[str, Any] = {
            "api_url": self._config.base_url,
            "healthy": await self.transport.is_healthy(),
            "model_count": None,
            "error": None,
        }
        if status["healthy"]:
            try:
                status["model_count"] = len(await self.transport.list_models())
            except TransportError as e:
                status["error"] = e.message
        return status

    async def list_models(self) -> List[ModelInfo]:
        return await self.transport.list_models()

    async def aclose(self) -> None:
        """取消进行中的聊天流并释放连接池。"""

        self.chat.clear()
        await self.transport.aclose()


def create_service(
    cfg: Optional[AssistSettings] = None,
    on_chat_update: Optional[UpdateListener] = None,
) -> AssistantService:
    """根据加载好的配置创建服务实例。"""

    return AssistantService((cfg or settings).to_config(), on_chat_update=on_chat_update)
