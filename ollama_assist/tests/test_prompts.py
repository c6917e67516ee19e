from ollama_assist.domain.models import CompletionContext, ConversationTurn, GenerationOptions, Role
from ollama_assist.prompts import (
    build_chat_request,
    build_completion_prompt,
    build_completion_request,
    docstring_prompt,
    explain_code_prompt,
    question_prompt,
)
from ollama_assist.providers.registry import CHAT, INLINE_COMPLETION


CTX = CompletionContext(
    prefix="def add(a, b):\n    return",
    suffix=" \n\nprint(add(1, 2))\n",
    line_prefix="    return",
    language_id="python",
    file_name="math_utils.py",
)


def test_completion_prompt_embeds_context():
    prompt = build_completion_prompt(CTX)
    assert prompt.startswith("You are an AI code completion assistant. Complete the following python code.")
    assert "File: math_utils.py" in prompt
    assert "Language: python" in prompt
    assert "```python\ndef add(a, b):\n    return\n```" in prompt
    assert build_completion_prompt(CTX) == prompt


def test_completion_request_payload():
    req = build_completion_request(CTX, model="codellama", options=INLINE_COMPLETION.options(max_tokens=64))
    payload = req.to_payload()
    assert payload["model"] == "codellama"
    assert payload["stream"] is False
    assert payload["suffix"] == "print(add(1, 2))"
    assert payload["options"] == {"temperature": 0.1, "num_predict": 64, "stop": ["\n\n", "```", "###"]}


def test_chat_request_uses_history_verbatim():
    turns = [
        ConversationTurn(role=Role.USER, content="hi"),
        ConversationTurn(role=Role.ASSISTANT, content="hello"),
        ConversationTurn(role=Role.USER, content="how are you?"),
    ]
    req = build_chat_request(turns, model="m", options=CHAT.options())
    payload = req.to_payload(stream=True)
    assert payload["messages"] == [t.to_payload() for t in turns]
    assert payload["stream"] is True
    assert payload["options"] == {"temperature": 0.7, "top_p": 0.9}
    req.messages[0].content = "mutated"
    assert turns[0].content == "hi"


def test_generation_options_omit_unset_fields():
    assert GenerationOptions().to_payload() == {}


def test_docstring_style_by_language():
    assert "Python docstring (Google style)" in docstring_prompt("def f(): pass", "python")
    assert "JSDoc comment" in docstring_prompt("function f() {}", "typescript")
    assert "appropriate documentation comment" in docstring_prompt("fn f() {}", "rust")


def test_explain_prompt_wraps_code():
    prompt = explain_code_prompt("x = 1", "python")
    assert prompt == "Explain this python code in detail:\n\n```python\nx = 1\n```"


def test_question_prompt_with_and_without_context():
    assert question_prompt("  What is this?  ") == "What is this?"
    prompt = question_prompt("What is this?", "SELECT 1", "sql")
    assert prompt.startswith("What is this?\n\nContext (sql code):\n```sql\nSELECT 1\n```")
