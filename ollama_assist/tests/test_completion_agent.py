"""测试行内补全引擎。"""

import asyncio

from ollama_assist.agents.completion_agent import (
    CancellationToken,
    CompletionState,
    InlineCompletionEngine,
    post_process_completion,
)
from ollama_assist.config.settings import AssistConfig
from ollama_assist.domain.document import TextDocument
from ollama_assist.domain.exceptions import TransportError
from ollama_assist.domain.models import Position, Range


CONFIG = AssistConfig(default_model="m", max_tokens=42)


class FakeTransport:
    """模拟的传输层。"""

    name = "fake"

    def __init__(self, completion="", error=None, on_generate=None):
        self.completion = completion
        self.error = error
        self.on_generate = on_generate
        self.requests = []

    async def generate(self, req):
        self.requests.append(req)
        if self.on_generate:
            self.on_generate()
        if self.error:
            raise self.error
        return self.completion


def _run(engine, document, position, token=None):
    return asyncio.run(engine.provide(document, position, token))


def test_post_process_echo_is_suppressed():
    assert post_process_completion("```js\nreturn x\n```", "  return x") == ""


def test_post_process_keeps_first_line_only():
    raw = "   .map(item => item.price)\n    .reduce(add, 0)\n"
    assert post_process_completion(raw, "const total = items") == ".map(item => item.price)"


def test_post_process_strips_fence_without_language():
    assert post_process_completion("```\nfoo()\n```", "x = ") == "foo()"


def test_post_process_empty():
    assert post_process_completion("", "x") == ""
    assert post_process_completion("```\n```", "x") == ""


def test_echo_scenario_returns_no_suggestion():
    transport = FakeTransport(completion="```js\nreturn x;\n```")
    engine = InlineCompletionEngine(transport, CONFIG)
    doc = TextDocument(text="function f(x) {\n  return x;\n}", language_id="javascript", file_name="f.js")
    assert _run(engine, doc, Position(1, 11)) is None
    assert len(transport.requests) == 1
    assert engine.last_outcome is CompletionState.DELIVERED
    assert engine.state is CompletionState.IDLE


def test_suggestion_and_request_options():
    transport = FakeTransport(completion="a, b)\n\nmore")
    engine = InlineCompletionEngine(transport, CONFIG)
    doc = TextDocument(text="import math\nresult = math.hypot(\n", language_id="python", file_name="geo.py")
    pos = Position(1, 20)
    suggestion = _run(engine, doc, pos)
    assert suggestion.text == "a, b)"
    assert suggestion.range == Range(pos, pos)

    req = transport.requests[0]
    assert req.model == "m"
    assert req.options.temperature == 0.1
    assert req.options.max_tokens == 42
    assert "\n\n" in req.options.stop
    assert "```" in req.options.stop
    assert "result = math.hypot(" in req.prompt


def test_skips_mid_identifier():
    transport = FakeTransport(completion="anything")
    engine = InlineCompletionEngine(transport, CONFIG)
    doc = TextDocument(text="value = compute_total(x)")
    assert _run(engine, doc, Position(0, 12)) is None
    assert transport.requests == []


def test_skips_cursor_at_end_of_identifier():
    transport = FakeTransport(completion="(a, b)")
    engine = InlineCompletionEngine(transport, CONFIG)
    doc = TextDocument(text="import math\nresult = math.hypot\n", language_id="python")
    assert _run(engine, doc, Position(1, 19)) is None
    assert transport.requests == []


def test_skips_whitespace_prefix():
    transport = FakeTransport(completion="anything")
    engine = InlineCompletionEngine(transport, CONFIG)
    doc = TextDocument(text="def f():\n    \n")
    assert _run(engine, doc, Position(1, 4)) is None
    assert transport.requests == []


def test_disabled_and_toggle():
    transport = FakeTransport(completion="1")
    engine = InlineCompletionEngine(transport, AssistConfig(completions_enabled=False))
    doc = TextDocument(text="x = ")
    assert _run(engine, doc, Position(0, 4)) is None
    assert transport.requests == []
    assert engine.toggle() is True
    assert _run(engine, doc, Position(0, 4)).text == "1"


def test_cancelled_during_request_is_discarded():
    token = CancellationToken()
    transport = FakeTransport(completion="42", on_generate=token.cancel)
    engine = InlineCompletionEngine(transport, CONFIG)
    assert _run(engine, TextDocument(text="x = "), Position(0, 4), token) is None
    assert engine.last_outcome is CompletionState.CANCELLED


def test_cancelled_before_request_skips_transport():
    token = CancellationToken()
    token.cancel()
    transport = FakeTransport(completion="42")
    engine = InlineCompletionEngine(transport, CONFIG)
    assert _run(engine, TextDocument(text="x = "), Position(0, 4), token) is None
    assert transport.requests == []


def test_transport_failure_is_absorbed():
    transport = FakeTransport(error=TransportError(code="TIMEOUT", message="timed out"))
    engine = InlineCompletionEngine(transport, CONFIG)
    assert _run(engine, TextDocument(text="x = "), Position(0, 4)) is None
    assert engine.last_outcome is CompletionState.FAILED
    assert engine.state is CompletionState.IDLE


def test_update_config_applies_to_next_request():
    transport = FakeTransport(completion="1")
    engine = InlineCompletionEngine(transport, CONFIG)
    engine.update_config(AssistConfig(default_model="other", max_tokens=7))
    _run(engine, TextDocument(text="x = "), Position(0, 4))
    assert transport.requests[0].model == "other"
    assert transport.requests[0].options.max_tokens == 7
