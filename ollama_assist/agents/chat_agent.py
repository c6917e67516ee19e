"""聊天会话引擎。

维护有界的对话历史，并保证同一会话同一时刻最多只有一次问答在进行：

    IDLE -> SENDING -> STREAMING -> {FINALIZED, FAILED} -> IDLE

- 流式片段按到达顺序拼接到进行中的 assistant 消息上，每个片段都会
  通知展示层一次（打字机效果）。
- 新的 send 或 clear 会取代正在进行的流：旧 StreamSession 被取消，
  之后到达的片段按 session_id 比对后丢弃。
- 流式失败时回滚未完成的 assistant 消息，换成一条错误提示；
  触发本次问答的用户消息保留，方便重试。
"""

import asyncio
import itertools
import logging
from contextlib import aclosing
from enum import Enum
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from ollama_assist.config.settings import AssistConfig
from ollama_assist.domain.conversation import ConversationHistory
from ollama_assist.domain.exceptions import TransportError, ValidationError
from ollama_assist.domain.models import ChatView, ConversationTurn, Role, StreamSession
from ollama_assist.infrastructure.logging.logger import logger
from ollama_assist.prompts import build_chat_request
from ollama_assist.providers.base import ModelTransport
from ollama_assist.providers.registry import CHAT


UpdateListener = Callable[[ChatView], None]


class ChatState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    FAILED = "failed"


def format_error_turn(error: TransportError) -> str:
    return f"Error: {error.message or 'Unknown error occurred'}"


class ChatSession:
    def __init__(
        self,
        transport: ModelTransport,
        config: AssistConfig,
        on_update: Optional[UpdateListener] = None,
    ):
        self._transport = transport
        self._config = config
        self._on_update = on_update
        self.history = ConversationHistory(config.chat_max_history_pairs)
        self.state = ChatState.IDLE
        self.last_outcome: Optional[ChatState] = None
        self._session_ids = itertools.count(1)
        self._current: Optional[StreamSession] = None

    def update_config(self, config: AssistConfig) -> None:
        """新的历史上限在下一次淘汰时生效，新模型在下一次 send 时生效。"""

        self._config = config
        self.history.max_pairs = config.chat_max_history_pairs

    def set_listener(self, on_update: Optional[UpdateListener]) -> None:
        self._on_update = on_update

    @property
    def is_streaming(self) -> bool:
        return self._current is not None

    @property
    def current_session_id(self) -> Optional[int]:
        return self._current.session_id if self._current else None

    def view(self) -> ChatView:
        return ChatView(turns=tuple(self.history.snapshot()), streaming=self.is_streaming)

    async def send(self, user_text: str) -> Optional[ConversationTurn]:
        """发送一条用户消息并流式接收回答。

        Returns:
            正常结束时返回最终的 assistant 消息；空输入、失败或被取代时返回 None。
        """

        try:
            text = self._validate(user_text)
        except ValidationError as e:
            logger.debug("Chat send ignored", extra={"extra": {"reason": e.code}})
            return None

        if self._current is not None:
            self._supersede(self._current, reason="new_send")

        session = StreamSession(
            session_id=next(self._session_ids),
            turn=ConversationTurn(role=Role.ASSISTANT, content=""),
        )
        self._current = session
        log_ctx: Dict[str, Any] = {
            "trace_id": f"ch-{uuid4().hex}",
            "session_id": session.session_id,
        }

        self.history.append(ConversationTurn(role=Role.USER, content=text))
        evicted = self.history.evict(reserve=1)
        if evicted:
            self._log(logging.INFO, "Evicted old turns", log_ctx, evicted=evicted)
        self.state = ChatState.SENDING
        self._notify()

        req = build_chat_request(self.history, model=self._config.default_model, options=CHAT.options())
        self.history.append(session.turn)
        self.state = ChatState.STREAMING
        self._notify()
        self._log(
            logging.INFO,
            "Calling provider (stream)",
            log_ctx,
            model=req.model,
            preset=CHAT.logical_name,
            user_preview=text[:80],
            message_count=len(req.messages),
        )

        try:
            async with aclosing(self._transport.stream_chat(req)) as stream:
                async for fragment in stream:
                    if not self._is_current(session):
                        self._log(logging.INFO, "Dropped fragment from superseded stream", log_ctx)
                        break
                    session.apply(fragment)
                    self._notify()
        except TransportError as e:
            if not self._is_current(session):
                self._log(logging.INFO, "Superseded stream failed", log_ctx, error=e.message)
                return None
            self._fail(session, e, log_ctx)
            return None
        except asyncio.CancelledError:
            if self._is_current(session):
                self._current = None
                self.state = ChatState.IDLE
                self._notify()
            raise

        if not self._is_current(session):
            return None
        self._finalize(session, log_ctx)
        return session.turn

    def clear(self) -> None:
        """清空历史；如果正在流式接收，之后到达的片段全部丢弃。"""

        if self._current is not None:
            self._supersede(self._current, reason="clear")
            self._current = None
        self.history.clear()
        self.state = ChatState.IDLE
        self._notify()

    # ---- 内部状态转换 ----

    @staticmethod
    def _validate(user_text: str) -> str:
        text = (user_text or "").strip()
        if not text:
            raise ValidationError(code="EMPTY_MESSAGE", message="Message is empty")
        return text

    def _is_current(self, session: StreamSession) -> bool:
        current = self._current
        return current is not None and current.session_id == session.session_id and not session.cancelled

    def _supersede(self, session: StreamSession, reason: str) -> None:
        """取消旧流；还没收到任何片段的空 assistant 占位直接移除。"""

        session.cancel()
        if not session.accumulated_text:
            self.history.remove(session.turn)
        self._log(
            logging.INFO,
            "Superseded in-flight stream",
            {"session_id": session.session_id},
            reason=reason,
            accumulated_length=len(session.accumulated_text),
        )

    def _finalize(self, session: StreamSession, log_ctx: Dict[str, Any]) -> None:
        self._current = None
        self.last_outcome = ChatState.FINALIZED
        self.state = ChatState.IDLE
        self.history.evict()
        self._log(
            logging.INFO,
            "Completed chat exchange",
            log_ctx,
            content_length=len(session.accumulated_text),
            history_length=len(self.history),
        )
        self._notify()

    def _fail(self, session: StreamSession, error: TransportError, log_ctx: Dict[str, Any]) -> None:
        self._current = None
        self.history.remove(session.turn)
        self.history.append(ConversationTurn(role=Role.ASSISTANT, content=format_error_turn(error)))
        self.last_outcome = ChatState.FAILED
        self.state = ChatState.IDLE
        self.history.evict()
        self._log(
            logging.ERROR,
            "Chat stream failed",
            log_ctx,
            error_code=error.code,
            error=error.message,
            partial_length=len(session.accumulated_text),
        )
        self._notify()

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self.view())

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
