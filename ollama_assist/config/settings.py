"""配置管理模块。

支持从 .env、config.yaml 以及环境变量（前缀 OLLAMA_）加载配置。

加载后的 AssistSettings 只负责“读配置”；各组件不直接依赖它，
而是通过 to_config() 得到一个不可变的 AssistConfig，在构造时
或 update_config() 时显式传入。
"""

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("OLLAMA_ASSIST_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


@dataclass(frozen=True)
class AssistConfig:
    """组件实际使用的配置快照。

    - api_url: 模型服务地址（不带末尾 /）。
    - request_timeout_ms: 单次补全请求超时；流式请求只用于建立连接。
    - completions_enabled: 是否启用行内补全。
    - max_tokens: 补全生成上限（映射为 num_predict）。
    - chat_max_history_pairs: 聊天历史保留的问答对数量。
    - default_model: 默认模型名。
    """

    api_url: str = DEFAULT_API_URL
    request_timeout_ms: int = 30000
    completions_enabled: bool = True
    max_tokens: int = 100
    chat_max_history_pairs: int = 20
    default_model: str = DEFAULT_MODEL
    context_lines_before: int = 10
    context_lines_after: int = 3

    @property
    def request_timeout(self) -> float:
        """超时时间（秒），供 httpx 使用。"""

        return max(0.1, self.request_timeout_ms / 1000.0)

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")


class AssistSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 模型服务 ----
    api_url: str = Field(default=DEFAULT_API_URL, description="Ollama 服务地址")
    request_timeout_ms: int = Field(default=30000, ge=100, description="补全请求超时（毫秒）")
    default_model: str = Field(default=DEFAULT_MODEL, description="默认模型名")

    # ---- 行内补全 ----
    completions_enabled: bool = Field(default=True, description="是否启用行内补全")
    max_tokens: int = Field(default=100, ge=1, le=4096, description="补全最大生成 token 数")
    context_lines_before: int = Field(default=10, ge=0, le=200, description="光标前取多少行作为上下文")
    context_lines_after: int = Field(default=3, ge=0, le=200, description="光标后取多少行作为 suffix")

    # ---- 聊天 ----
    chat_max_history_pairs: int = Field(default=20, ge=1, le=200, description="聊天历史保留的问答对数量")

    # ---- 日志 ----
    log_dir: str = Field(default="logs/ollama_assist", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_prefix="OLLAMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )

    def to_config(self) -> AssistConfig:
        return AssistConfig(
            api_url=self.api_url,
            request_timeout_ms=self.request_timeout_ms,
            completions_enabled=self.completions_enabled,
            max_tokens=self.max_tokens,
            chat_max_history_pairs=self.chat_max_history_pairs,
            default_model=self.default_model,
            context_lines_before=self.context_lines_before,
            context_lines_after=self.context_lines_after,
        )


def load_settings(**overrides: Any) -> AssistSettings:
    """重新读取一次配置；overrides 优先级最高。"""

    return AssistSettings(**overrides)


settings = AssistSettings()
