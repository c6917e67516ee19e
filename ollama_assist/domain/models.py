"""统一的对话、补全与编辑器数据模型。

本模块定义了各组件之间共享的标准数据结构：

- Role / ConversationTurn: 一条对话消息（system/user/assistant）。
- GenerationOptions: 生成参数，负责映射为 Ollama 的 options 字段。
- CompletionRequest / ChatRequest: 发给模型服务的请求。
- StreamSession: 一次流式对话的会话标识与取消标志。
- Position / Range / CompletionContext / InlineSuggestion: 行内补全的输入输出。
- ChatView: 交给展示层的聊天快照。

Transport 层（OllamaClient）只依赖这些模型，并负责在 Ollama JSON
与这些模型之间做转换。
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Role(str, Enum):
    """消息角色，与 Ollama messages[].role 一一对应。"""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, raw: Any) -> "Role":
        """解析服务端返回的 role，未知值按 assistant 处理。"""

        try:
            return cls(str(raw).lower())
        except ValueError:
            return cls.ASSISTANT


@dataclass
class ConversationTurn:
    """一条对话消息。

    流式回答时，进行中的 assistant 消息会被原地追加 content，
    直到结束或被回滚。
    """

    role: Role
    content: str = ""

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}

    def copy(self) -> "ConversationTurn":
        return replace(self)


@dataclass
class GenerationOptions:
    """生成参数。None 表示不下发，由服务端使用默认值。"""

    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.top_p is not None:
            payload["top_p"] = self.top_p
        if self.max_tokens is not None:
            payload["num_predict"] = self.max_tokens
        if self.stop:
            payload["stop"] = list(self.stop)
        return payload


@dataclass
class CompletionRequest:
    """一次单发补全请求（/api/generate），每次触发时创建，用完即弃。"""

    model: str
    prompt: str
    suffix: str = ""
    options: GenerationOptions = field(default_factory=GenerationOptions)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": self.prompt,
            "stream": False,
            "options": self.options.to_payload(),
        }
        if self.suffix:
            payload["suffix"] = self.suffix
        return payload


@dataclass
class ChatRequest:
    """一次聊天请求（/api/chat）。messages 即有界历史，按时间顺序。"""

    model: str
    messages: List[ConversationTurn]
    options: GenerationOptions = field(default_factory=GenerationOptions)

    def to_payload(self, stream: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_payload() for m in self.messages],
            "stream": stream,
            "options": self.options.to_payload(),
        }


@dataclass
class StreamSession:
    """一次流式对话尝试。

    session_id 单调递增；被新的 send/clear 取代后 cancelled 置 True，
    之后到达的片段一律丢弃。
    """

    session_id: int
    turn: ConversationTurn
    cancelled: bool = False
    accumulated_text: str = ""

    def cancel(self) -> None:
        self.cancelled = True

    def apply(self, fragment: str) -> None:
        self.accumulated_text += fragment
        self.turn.content += fragment


@dataclass(frozen=True)
class Position:
    """编辑器光标位置（0 起始的行号与列号）。"""

    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position


@dataclass(frozen=True)
class CompletionContext:
    """光标附近的有界上下文。

    - prefix: 光标前窗口（当前行截断到光标）。
    - suffix: 光标后窗口（当前行从光标开始）。
    - line_prefix: 当前行光标前的文本，用于回显判重。
    """

    prefix: str
    suffix: str
    line_prefix: str
    language_id: str
    file_name: str


@dataclass(frozen=True)
class InlineSuggestion:
    """行内补全结果：一段文本及其插入位置。"""

    text: str
    range: Range


@dataclass(frozen=True)
class ChatView:
    """交给展示层的聊天快照，turns 为副本。"""

    turns: Tuple[ConversationTurn, ...]
    streaming: bool = False


@dataclass
class ModelInfo:
    """/api/tags 返回的单个模型信息。"""

    name: str
    size: int = 0
    modified_at: Optional[str] = None
    family: Optional[str] = None
    parameter_size: Optional[str] = None
    quantization_level: Optional[str] = None
    raw: Optional[dict] = None
