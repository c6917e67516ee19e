"""提示词构造工具。

模板按语言(locale) 存放在 prompts/<locale>/*.md 中，使用 str.format
占位符。这里负责把上下文填进模板，并组装成发给模型服务的请求对象；
全部是确定性的字符串拼接，不做任何 I/O 以外的副作用。
"""

from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from ollama_assist.domain.models import (
    ChatRequest,
    CompletionContext,
    CompletionRequest,
    ConversationTurn,
    GenerationOptions,
)


PROMPTS_DIR = Path(__file__).resolve().parent

DOCSTRING_STYLES = {
    "python": "Python docstring (Google style)",
    "javascript": "JSDoc comment",
    "typescript": "JSDoc comment",
    "java": "Javadoc comment",
    "csharp": "XML documentation comment",
}
DEFAULT_DOCSTRING_STYLE = "appropriate documentation comment"


@lru_cache(maxsize=None)
def load_prompt(name: str, locale: str = "en") -> str:
    """根据模板名和语言加载提示词模板文本。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8")


def _render(name: str, **fields: str) -> str:
    return load_prompt(name).format(**fields).rstrip("\n")


# ---- 行内补全 ----

def build_completion_prompt(ctx: CompletionContext) -> str:
    return _render(
        "inline_completion",
        language=ctx.language_id,
        file_name=ctx.file_name,
        context=ctx.prefix,
    )


def build_completion_request(ctx: CompletionContext, model: str, options: GenerationOptions) -> CompletionRequest:
    return CompletionRequest(
        model=model,
        prompt=build_completion_prompt(ctx),
        suffix=ctx.suffix.strip(),
        options=options,
    )


# ---- 聊天 ----

def build_chat_request(
    history: Iterable[ConversationTurn],
    model: str,
    options: GenerationOptions,
) -> ChatRequest:
    """消息列表就是有界历史本身，不额外包装 system 提示。"""

    return ChatRequest(model=model, messages=[t.copy() for t in history], options=options)


# ---- 编辑器命令 ----

def explain_code_prompt(code: str, language: str) -> str:
    return _render("explain_code", code=code, language=language)


def improve_code_prompt(code: str, language: str) -> str:
    return _render("improve_code", code=code, language=language)


def docstring_prompt(code: str, language: str) -> str:
    style = DOCSTRING_STYLES.get(language, DEFAULT_DOCSTRING_STYLE)
    return _render("generate_docstring", code=code, language=language, style=style)


def question_prompt(question: str, code: Optional[str] = None, language: str = "plaintext") -> str:
    """用户提问；如果有选中代码，把它作为上下文附在问题后面。"""

    question = question.strip()
    if not code or not code.strip():
        return question
    return _render("question_context", question=question, code=code, language=language)
