"""编辑器文档快照与光标上下文提取。

extract_context 是纯函数：给定文档与光标，截取光标前后的有界窗口，
不做任何 I/O，也不会失败（越界的位置会被收敛到文档范围内）。
"""

from dataclasses import dataclass
from pathlib import PurePath
from typing import List

from .models import CompletionContext, Position


DEFAULT_LINES_BEFORE = 10
DEFAULT_LINES_AFTER = 3


@dataclass(frozen=True)
class TextDocument:
    """按行寻址的文档快照。"""

    text: str
    language_id: str = "plaintext"
    file_name: str = "file"

    @property
    def lines(self) -> List[str]:
        return [line.rstrip("\r") for line in self.text.split("\n")]

    @property
    def line_count(self) -> int:
        return self.text.count("\n") + 1

    def line_at(self, line: int) -> str:
        return self.lines[line]

    @property
    def base_name(self) -> str:
        return PurePath(self.file_name.replace("\\", "/")).name or "file"


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def is_mid_identifier(line_text: str, character: int) -> bool:
    """光标紧跟在标识符字符之后（单词中间或单词末尾）时返回 True。"""

    if character <= 0 or character > len(line_text):
        return False
    return _is_word_char(line_text[character - 1])


def clamp_position(document: TextDocument, position: Position) -> Position:
    lines = document.lines
    line = min(max(0, position.line), len(lines) - 1)
    character = min(max(0, position.character), len(lines[line]))
    return Position(line=line, character=character)


def extract_context(
    document: TextDocument,
    position: Position,
    lines_before: int = DEFAULT_LINES_BEFORE,
    lines_after: int = DEFAULT_LINES_AFTER,
) -> CompletionContext:
    """截取光标前后窗口。

    - prefix: 第 max(0, line - lines_before) 行到光标（当前行截断到光标列）。
    - suffix: 光标到第 min(last_line, line + lines_after) 行（当前行从光标列开始）。
    """

    lines = document.lines
    pos = clamp_position(document, position)
    current = lines[pos.line]
    line_prefix = current[: pos.character]

    start = max(0, pos.line - max(0, lines_before))
    prefix_lines = lines[start : pos.line] + [line_prefix]

    end = min(len(lines) - 1, pos.line + max(0, lines_after))
    suffix_lines = [current[pos.character :]] + lines[pos.line + 1 : end + 1]

    return CompletionContext(
        prefix="\n".join(prefix_lines),
        suffix="\n".join(suffix_lines),
        line_prefix=line_prefix,
        language_id=document.language_id,
        file_name=document.base_name,
    )
