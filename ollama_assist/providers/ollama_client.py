"""Ollama Provider 适配器。

使用 Ollama 原生 HTTP 接口：
- POST {api_url}/api/generate: 单发补全（stream=false），返回 {response, done}。
- POST {api_url}/api/chat: 聊天；stream=true 时返回按行分隔的 JSON
  （{"message": {"role", "content"}, "done"}）。
- GET  {api_url}/api/tags: 模型列表，兼作连通性探测。

所有 httpx 异常都在本模块内转换成 TransportError，不会泄漏到上层。

底层共用一个惰性创建的 httpx.AsyncClient（连接池），超时按请求指定；
用完后调用 aclose()，或者用 `async with OllamaClient(...)`。
"""

import json
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from ollama_assist.config.settings import AssistConfig
from ollama_assist.domain.exceptions import PartialStreamError, TransportError
from ollama_assist.domain.models import ChatRequest, CompletionRequest, ConversationTurn, ModelInfo, Role
from ollama_assist.infrastructure.logging.logger import logger
from ollama_assist.providers.ndjson import NdjsonDecoder, chat_fragment


HEALTH_CHECK_TIMEOUT = 5.0

FragmentCallback = Callable[[str], Union[None, Awaitable[None]]]


class OllamaClient:
    """Ollama 客户端实现。"""

    name = "ollama"

    def __init__(self, config: AssistConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._config = config
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    def update_config(self, config: AssistConfig) -> None:
        """新地址与超时从下一次请求开始生效（URL 按请求拼接）。"""

        self._config = config

    async def aclose(self) -> None:
        if self._http is not None:
            http, self._http = self._http, None
            await http.aclose()

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def config(self) -> AssistConfig:
        return self._config

    # ---- 非流式 ----

    async def generate(self, req: CompletionRequest) -> str:
        data = await self._post_json("/api/generate", req.to_payload())
        text = data.get("response")
        if not isinstance(text, str):
            raise TransportError(
                code="MALFORMED_RESPONSE",
                message="generate response has no 'response' text",
                model=req.model,
            )
        return text

    async def chat(self, req: ChatRequest) -> ConversationTurn:
        data = await self._post_json("/api/chat", req.to_payload(stream=False))
        message = data.get("message")
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise TransportError(
                code="MALFORMED_RESPONSE",
                message="chat response has no message content",
                model=req.model,
            )
        return ConversationTurn(role=Role.parse(message.get("role")), content=message["content"])

    async def list_models(self) -> List[ModelInfo]:
        data = await self._request_json("GET", "/api/tags", timeout=self._config.request_timeout)
        models = data.get("models")
        if not isinstance(models, list):
            raise TransportError(code="MALFORMED_RESPONSE", message="tags response has no model list")
        return [self._parse_model(m) for m in models if isinstance(m, dict) and m.get("name")]

    async def is_healthy(self) -> bool:
        """尽力而为的连通性探测，任何失败都返回 False。"""

        try:
            resp = await self._client().get(self._url("/api/tags"), timeout=HEALTH_CHECK_TIMEOUT)
            return resp.is_success
        except Exception as exc:  # noqa: BLE001 - 探测接口不允许抛出
            logger.info(
                "Health check failed",
                extra={"extra": {"api_url": self._config.base_url, "error": repr(exc)}},
            )
            return False

    # ---- 流式 ----

    async def stream_chat(self, req: ChatRequest) -> AsyncIterator[str]:
        """流式聊天，逐段产出非空的 message.content。

        只对建立连接设置超时；流本身没有总超时。
        """

        decoder = NdjsonDecoder()
        received: List[str] = []
        timeout = httpx.Timeout(None, connect=self._config.request_timeout)
        try:
            async with self._client().stream(
                "POST", self._url("/api/chat"), json=req.to_payload(stream=True), timeout=timeout
            ) as resp:
                if not resp.is_success:
                    body = await resp.aread()
                    raise self._status_error(resp.status_code, body.decode("utf-8", "replace"))
                async for chunk in resp.aiter_bytes():
                    for obj in decoder.feed(chunk):
                        text = self._fragment_or_raise(obj, received)
                        if text:
                            received.append(text)
                            yield text
                for obj in decoder.flush():
                    text = self._fragment_or_raise(obj, received)
                    if text:
                        received.append(text)
                        yield text
        except httpx.TimeoutException as e:
            raise self._stream_error("TIMEOUT", "Timed out connecting to model service", received, e)
        except httpx.HTTPError as e:
            raise self._stream_error("NETWORK_ERROR", str(e) or type(e).__name__, received, e)
        finally:
            if decoder.dropped_lines:
                logger.info(
                    "Dropped malformed stream lines",
                    extra={"extra": {"dropped_lines": decoder.dropped_lines, "model": req.model}},
                )

    async def stream_chat_to(self, req: ChatRequest, on_fragment: FragmentCallback) -> None:
        """回调风格的流式接口：每个片段调用一次 on_fragment。"""

        async with aclosing(self.stream_chat(req)) as stream:
            async for text in stream:
                result = on_fragment(text)
                if result is not None:
                    await result

    # ---- 辅助方法 ----

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=self._config.request_timeout,
                transport=self._transport,
                trust_env=False,
                headers={"Content-Type": "application/json"},
            )
        return self._http

    def _url(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request_json("POST", path, timeout=self._config.request_timeout, json=payload)

    async def _request_json(self, method: str, path: str, timeout: float, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = await self._client().request(method, self._url(path), timeout=timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(
                code="TIMEOUT",
                message=f"Request to {path} timed out after {timeout}s",
                http_status=504,
                cause=e,
            )
        except httpx.HTTPError as e:
            raise TransportError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, cause=e)
        if not resp.is_success:
            raise self._status_error(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(code="MALFORMED_RESPONSE", message=f"Invalid JSON from {path}", cause=e)
        if not isinstance(data, dict):
            raise TransportError(code="MALFORMED_RESPONSE", message=f"Unexpected payload from {path}")
        return data

    @staticmethod
    def _status_error(status: int, body: str) -> TransportError:
        detail = body[:500]
        try:
            parsed = json.loads(body)
            if isinstance(parsed, dict) and parsed.get("error"):
                detail = str(parsed["error"])
        except ValueError:
            pass
        return TransportError(code="API_ERROR", message=f"HTTP {status}: {detail}", http_status=status)

    @staticmethod
    def _stream_error(code: str, message: str, received: List[str], cause: BaseException) -> TransportError:
        if received:
            return PartialStreamError(message, received="".join(received), cause=cause)
        return TransportError(code=code, message=message, cause=cause)

    @staticmethod
    def _fragment_or_raise(obj: Dict[str, Any], received: List[str]) -> str:
        if obj.get("error"):
            message = str(obj["error"])
            if received:
                raise PartialStreamError(message, received="".join(received))
            raise TransportError(code="API_ERROR", message=message)
        return chat_fragment(obj)

    @staticmethod
    def _parse_model(payload: Dict[str, Any]) -> ModelInfo:
        details = payload.get("details") or {}
        return ModelInfo(
            name=payload["name"],
            size=int(payload.get("size") or 0),
            modified_at=payload.get("modified_at"),
            family=details.get("family"),
            parameter_size=details.get("parameter_size"),
            quantization_level=details.get("quantization_level"),
            raw=payload,
        )
