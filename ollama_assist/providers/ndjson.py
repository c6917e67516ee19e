"""按行分隔 JSON（NDJSON）的增量解码器。

网络分块与行边界无关：一个块可能包含多行，也可能只有半行，甚至把
一个 UTF-8 字符切成两半。解码器以字节为单位缓存，遇到 b"\\n" 才解析，
流结束时再 flush 最后一行。解析失败的行直接丢弃并计数。
"""

import json
from typing import Any, Dict, List


class NdjsonDecoder:
    def __init__(self):
        self._buffer = b""
        self.dropped_lines = 0

    def feed(self, data: bytes) -> List[Dict[str, Any]]:
        """喂入一个字节块，返回其中所有完整且合法的 JSON 对象。"""

        if not data:
            return []
        self._buffer += data
        *complete, self._buffer = self._buffer.split(b"\n")
        return self._decode_lines(complete)

    def flush(self) -> List[Dict[str, Any]]:
        """流结束时处理缓冲区中剩余的最后一行。"""

        rest, self._buffer = self._buffer, b""
        return self._decode_lines([rest])

    @property
    def pending(self) -> bytes:
        return self._buffer

    def _decode_lines(self, lines: List[bytes]) -> List[Dict[str, Any]]:
        objects: List[Dict[str, Any]] = []
        for raw in lines:
            line = raw.strip()
            if not line:
                continue
            try:
                obj = json.loads(line.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                self.dropped_lines += 1
                continue
            if not isinstance(obj, dict):
                self.dropped_lines += 1
                continue
            objects.append(obj)
        return objects


def chat_fragment(obj: Dict[str, Any]) -> str:
    """取出 /api/chat 流式对象中的 message.content，没有则返回空串。"""

    message = obj.get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""
