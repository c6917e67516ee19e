"""生成参数预设。

本模块把“用途”与“具体生成参数”解耦：

- 逻辑名（logical_name）：用途名称，例如 "inline-completion"、"chat"，会写进请求日志。
- GenerationPreset：该用途默认的 temperature / top_p / stop。

行内补全要求确定性、短输出，所以温度很低，并用空行与代码块标记截断；
聊天使用更高的温度。max_tokens 由配置决定，在构造请求时填入。
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ollama_assist.domain.models import GenerationOptions


COMPLETION_STOP_SEQUENCES = ["\n\n", "```", "###"]


@dataclass(frozen=True)
class GenerationPreset:
    """单个用途的默认生成参数。"""

    logical_name: str
    temperature: float
    top_p: Optional[float] = None
    stop: List[str] = field(default_factory=list)

    def options(self, max_tokens: Optional[int] = None) -> GenerationOptions:
        return GenerationOptions(
            temperature=self.temperature,
            top_p=self.top_p,
            max_tokens=max_tokens,
            stop=list(self.stop),
        )


INLINE_COMPLETION = GenerationPreset(
    logical_name="inline-completion",
    temperature=0.1,
    stop=COMPLETION_STOP_SEQUENCES,
)

CHAT = GenerationPreset(
    logical_name="chat",
    temperature=0.7,
    top_p=0.9,
)
