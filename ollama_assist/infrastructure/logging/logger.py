import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from ollama_assist.config.settings import settings


LOG_FILE_NAME = "assist.log"

# 会带出用户代码或聊天内容的结构化字段
CONTENT_FIELDS = frozenset({"line_prefix", "user_preview"})


def redact_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    redacted = dict(fields)
    for key in CONTENT_FIELDS.intersection(redacted):
        value = redacted[key]
        redacted[key] = f"<redacted:{len(value) if isinstance(value, str) else 0} chars>"
    return redacted


class JsonFormatter(logging.Formatter):
    """一行一个 JSON；extra={"extra": {...}} 中的字段平铺到顶层。"""

    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(redact_fields(extra) if self._redact else extra)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("ollama_assist")
    logger.setLevel(settings.log_level.upper())
    if logger.handlers:
        return logger
    log_dir = Path(settings.log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
    fh.setFormatter(JsonFormatter(settings.log_redact_content))
    logger.addHandler(fh)
    return logger


logger = setup_logger()
