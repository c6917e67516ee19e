import asyncio

from ollama_assist.api.service import AssistantService, create_service
from ollama_assist.config.settings import AssistConfig, load_settings
from ollama_assist.domain.document import TextDocument
from ollama_assist.domain.exceptions import TransportError
from ollama_assist.domain.models import ModelInfo, Position, Role


class FakeTransport:
    name = "fake"

    def __init__(self, healthy=True, models=None, models_error=None):
        self.healthy = healthy
        self.models = models or []
        self.models_error = models_error
        self.chat_requests = []
        self.generate_requests = []
        self.config = None
        self.closed = False

    def update_config(self, config):
        self.config = config

    async def generate(self, req):
        self.generate_requests.append(req)
        return "done()"

    async def stream_chat(self, req):
        self.chat_requests.append(req)
        yield "ok"

    async def list_models(self):
        if self.models_error:
            raise self.models_error
        return self.models

    async def is_healthy(self):
        return self.healthy

    async def aclose(self):
        self.closed = True


def _service(**kw) -> AssistantService:
    return AssistantService(AssistConfig(default_model="m"), transport=FakeTransport(**kw))


def test_explain_code_sends_prompt_to_chat():
    svc = _service()
    turn = asyncio.run(svc.explain_code("x = 1", "python"))
    assert turn.content == "ok"
    first = svc.chat.history.snapshot()[0]
    assert first.role is Role.USER
    assert first.content.startswith("Explain this python code in detail:")


def test_commands_ignore_empty_selection():
    svc = _service()
    assert asyncio.run(svc.improve_code("   ", "python")) is None
    assert asyncio.run(svc.generate_docstring("", "java")) is None
    assert asyncio.run(svc.ask_question("  ")) is None
    assert svc.transport.chat_requests == []


def test_docstring_and_question_commands():
    svc = _service()
    asyncio.run(svc.generate_docstring("public int f() {}", "java"))
    asyncio.run(svc.ask_question("Why?", "SELECT 1", "sql"))
    contents = [m.content for m in svc.transport.chat_requests[-1].messages]
    assert "Javadoc comment" in contents[0]
    assert contents[-1].startswith("Why?\n\nContext (sql code):")


def test_inline_completion_and_toggle():
    svc = _service()
    doc = TextDocument(text="run(", language_id="python")
    suggestion = asyncio.run(svc.provide_inline_completion(doc, Position(0, 4)))
    assert suggestion.text == "done()"
    assert svc.toggle_completions() is False
    assert asyncio.run(svc.provide_inline_completion(doc, Position(0, 4))) is None


def test_clear_chat_notifies_listener():
    views = []
    svc = AssistantService(AssistConfig(), transport=FakeTransport(), on_chat_update=views.append)
    asyncio.run(svc.send_chat("hello"))
    svc.clear_chat()
    assert views[-1].turns == ()
    assert len(svc.chat.history) == 0


def test_check_connection():
    models = [ModelInfo(name="llama3.2"), ModelInfo(name="codellama")]
    status = asyncio.run(_service(models=models).check_connection())
    assert status["healthy"] is True
    assert status["model_count"] == 2

    status = asyncio.run(_service(healthy=False).check_connection())
    assert status == {"api_url": "http://localhost:11434", "healthy": False, "model_count": None, "error": None}

    err = TransportError(code="API_ERROR", message="HTTP 500: boom")
    status = asyncio.run(_service(models_error=err).check_connection())
    assert status["error"] == "HTTP 500: boom"


def test_update_config_reaches_components():
    svc = _service()
    new = AssistConfig(default_model="other", chat_max_history_pairs=2, completions_enabled=False)
    svc.update_config(new)
    assert svc.config is new
    assert svc.transport.config is new
    assert svc.chat.history.max_pairs == 2
    assert svc.completions.enabled is False


def test_create_service_from_settings(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    svc = create_service(load_settings(default_model="qwen2.5-coder"))
    assert svc.config.default_model == "qwen2.5-coder"
    assert svc.transport.config.default_model == "qwen2.5-coder"


def test_aclose_releases_transport():
    svc = _service()
    asyncio.run(svc.send_chat("hello"))
    asyncio.run(svc.aclose())
    assert svc.transport.closed is True
    assert svc.chat.is_streaming is False
    assert len(svc.chat.history) == 0
