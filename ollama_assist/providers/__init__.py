"""模型服务集成层。

该包下的模块负责：
- 定义传输层抽象接口 (base)。
- 维护不同用途的生成参数预设 (registry)。
- NDJSON 流的增量解码 (ndjson)。
- Ollama 的具体实现 (ollama_client)。
"""

from typing import Optional

from ollama_assist.config.settings import AssistConfig, settings
from ollama_assist.providers.base import ModelTransport
from ollama_assist.providers.ollama_client import OllamaClient


def create_transport(config: Optional[AssistConfig] = None) -> ModelTransport:
    """根据配置创建传输层实例，默认取当前加载的配置。"""

    return OllamaClient(config or settings.to_config())
