"""行内补全引擎。

每次编辑器触发补全都走一遍同样的状态机：

    IDLE -> REQUESTING -> {DELIVERED, CANCELLED, FAILED} -> IDLE

补全失败绝不能打断用户输入：传输层错误只记日志，返回 None。
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from ollama_assist.config.settings import AssistConfig
from ollama_assist.domain.document import TextDocument, extract_context, is_mid_identifier
from ollama_assist.domain.exceptions import TransportError, ValidationError
from ollama_assist.domain.models import CompletionContext, InlineSuggestion, Position, Range
from ollama_assist.infrastructure.logging.logger import logger
from ollama_assist.prompts import build_completion_request
from ollama_assist.providers.base import ModelTransport
from ollama_assist.providers.registry import INLINE_COMPLETION


_LEADING_FENCE = re.compile(r"^```\w*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")


class CompletionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CancellationToken:
    """协作式取消标志，由编辑器在用户继续输入时置位。"""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


def post_process_completion(raw: str, line_prefix: str) -> str:
    """把模型原始输出整理成单行建议。

    去掉代码块标记，首行去掉前导空白，只保留第一行；
    如果结果只是重复了光标前已经输入的内容，返回空串。
    """

    if not raw:
        return ""
    processed = raw.strip()
    processed = _LEADING_FENCE.sub("", processed, count=1)
    processed = _TRAILING_FENCE.sub("", processed, count=1)

    first_line = processed.split("\n", 1)[0].lstrip()

    if first_line.strip() == line_prefix.strip():
        return ""
    return first_line


class InlineCompletionEngine:
    def __init__(self, transport: ModelTransport, config: AssistConfig):
        self._transport = transport
        self._config = config
        self._enabled = config.completions_enabled
        self.state = CompletionState.IDLE
        self.last_outcome: Optional[CompletionState] = None

    def update_config(self, config: AssistConfig) -> None:
        self._config = config
        self._enabled = config.completions_enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def toggle(self) -> bool:
        self._enabled = not self._enabled
        return self._enabled

    async def provide(
        self,
        document: TextDocument,
        position: Position,
        token: Optional[CancellationToken] = None,
    ) -> Optional[InlineSuggestion]:
        """为光标位置给出一条行内补全建议，没有合适建议时返回 None。"""

        token = token or CancellationToken()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"cp-{uuid4().hex}",
            "file_name": document.base_name,
            "line": position.line,
        }

        try:
            ctx = self._check_trigger(document, position)
        except ValidationError as e:
            self._log(logging.DEBUG, "Completion skipped", log_ctx, reason=e.code)
            return None

        self.state = CompletionState.REQUESTING
        try:
            text = await self._complete(ctx, token, log_ctx)
        finally:
            self.state = CompletionState.IDLE

        if not text or not text.strip():
            return None
        return InlineSuggestion(text=text, range=Range(position, position))

    def _check_trigger(self, document: TextDocument, position: Position) -> CompletionContext:
        if not self._enabled:
            raise ValidationError(code="COMPLETIONS_DISABLED", message="Inline completions are disabled")
        ctx = extract_context(
            document,
            position,
            lines_before=self._config.context_lines_before,
            lines_after=self._config.context_lines_after,
        )
        line_text = document.line_at(min(max(0, position.line), document.line_count - 1))
        if is_mid_identifier(line_text, len(ctx.line_prefix)):
            raise ValidationError(code="MID_IDENTIFIER", message="Cursor is inside an identifier")
        if not ctx.line_prefix.strip():
            raise ValidationError(code="EMPTY_PREFIX", message="Nothing typed before the cursor")
        return ctx

    async def _complete(
        self,
        ctx: CompletionContext,
        token: CancellationToken,
        log_ctx: Dict[str, Any],
    ) -> str:
        if token.is_cancelled:
            self._finish(CompletionState.CANCELLED, log_ctx)
            return ""

        req = build_completion_request(
            ctx,
            model=self._config.default_model,
            options=INLINE_COMPLETION.options(max_tokens=self._config.max_tokens),
        )
        self._log(
            logging.INFO,
            "Requesting completion",
            log_ctx,
            model=req.model,
            preset=INLINE_COMPLETION.logical_name,
            language=ctx.language_id,
            line_prefix=ctx.line_prefix,
        )
        try:
            raw = await self._transport.generate(req)
        except TransportError as e:
            if token.is_cancelled:
                self._finish(CompletionState.CANCELLED, log_ctx)
                return ""
            self._finish(CompletionState.FAILED, log_ctx, error_code=e.code, error=e.message)
            return ""

        if token.is_cancelled:
            self._finish(CompletionState.CANCELLED, log_ctx)
            return ""

        text = post_process_completion(raw, ctx.line_prefix)
        self._finish(CompletionState.DELIVERED, log_ctx, suggestion_length=len(text))
        return text

    def _finish(self, outcome: CompletionState, log_ctx: Dict[str, Any], **fields: Any) -> None:
        self.last_outcome = outcome
        level = logging.WARNING if outcome is CompletionState.FAILED else logging.INFO
        self._log(level, f"Completion {outcome.value}", log_ctx, **fields)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
