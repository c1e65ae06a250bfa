"""Generation fallback engine: ordering, failure reasons, call counts."""

import json

import httpx

from app.errors import FailureReason
from app.services.llm_provider import (
    CompletionBackend,
    GenerationFallbackEngine,
    build_backends,
    normalize_base_url,
    normalize_secret,
    parse_json_object,
)


def _backend(name):
    return CompletionBackend(name=name, base_url=f"https://{name}.example", api_key=f"key-{name}", model="m")


def _completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestBuildBackends:

    def test_order_and_requirements(self, settings):
        s = settings.model_copy(update={
            "openai_api_key": "sk-openai\\n",
            "openai_model": None,
            "openrouter_api_key": "or-key",
            "openrouter_model": None,  # model required for alternates
            "groq_api_key": "gq-key",
            "groq_model": "llama",
            "groq_base_url": "https://api.groq.com/openai/v1/",
            "cerebras_api_key": "cb-key",
            "cerebras_model": "qwen",
        })
        backends = build_backends(s)
        assert [b.name for b in backends] == ["openai", "groq", "cerebras"]
        assert backends[0].api_key == "sk-openai"
        assert backends[0].model == "gpt-4o-mini"
        assert backends[1].base_url == "https://api.groq.com/openai"

    def test_nothing_configured(self, settings):
        s = settings.model_copy(update={
            "openai_api_key": None, "openrouter_api_key": None,
            "groq_api_key": None, "cerebras_api_key": None,
        })
        assert build_backends(s) == []

    def test_key_not_in_repr(self):
        assert "key-openai" not in repr(_backend("openai"))


class TestHelpers:

    def test_normalize_secret(self):
        assert normalize_secret("  abc\\n ") == "abc"
        assert normalize_secret(None) == ""

    def test_normalize_base_url(self):
        assert normalize_base_url("https://api.openai.com/v1/") == "https://api.openai.com"
        assert normalize_base_url("https://openrouter.ai/api") == "https://openrouter.ai/api"

    def test_parse_json_object_recovers_fenced(self):
        assert parse_json_object('```json\n{"title": "T"}\n```') == {"title": "T"}
        assert parse_json_object("[1, 2]") is None
        assert parse_json_object("no json here") is None


class TestGenerate:

    async def test_zero_backends_not_configured_no_calls(self, mock_http):
        client, transport = mock_http(lambda r: _completion("{}"))
        engine = GenerationFallbackEngine([], client=client)
        result = await engine.generate("t", "sys", "user")
        assert not result.ok
        assert result.error == FailureReason.generation_not_configured
        assert transport.requests == []

    async def test_unset_flag_without_keys_reports_not_configured(self, settings, mock_http):
        s = settings.model_copy(update={
            "generation_enabled": None,
            "openai_api_key": None,
            "openrouter_api_key": None,
            "groq_api_key": None,
            "cerebras_api_key": None,
        })
        client, transport = mock_http(lambda r: _completion("{}"))
        engine = GenerationFallbackEngine.from_settings(s, client=client)
        assert engine.enabled
        result = await engine.generate("editorial_draft", "sys", "user")
        assert result.error == FailureReason.generation_not_configured
        assert transport.requests == []

    async def test_disabled_flag_wins(self, mock_http):
        client, transport = mock_http(lambda r: _completion("{}"))
        engine = GenerationFallbackEngine([_backend("openai")], enabled=False, client=client)
        result = await engine.generate("t", "sys", "user")
        assert result.error == FailureReason.generation_disabled
        assert transport.requests == []

    async def test_explicit_enable_without_backends(self, mock_http):
        client, _ = mock_http(lambda r: _completion("{}"))
        result = await GenerationFallbackEngine([], enabled=True, client=client).generate("t", "s", "u")
        assert result.error == FailureReason.generation_not_configured

    async def test_malformed_then_success_makes_exactly_two_calls(self, mock_http):
        def handler(request):
            if request.url.host == "openai.example":
                return _completion("this is not json")
            return _completion('{"title":"T","body":"B"}')

        client, transport = mock_http(handler)
        engine = GenerationFallbackEngine([_backend("openai"), _backend("openrouter"), _backend("groq")], client=client)
        result = await engine.generate("editorial_draft", "sys", "user")

        assert result.ok
        assert result.data == {"title": "T", "body": "B"}
        assert result.provider == "openrouter"
        assert [r.url.host for r in transport.requests] == ["openai.example", "openrouter.example"]
        assert [a["failure"] for a in result.attempts] == ["unparseable_content", None]

    async def test_request_shape(self, mock_http):
        client, transport = mock_http(lambda r: _completion('{"ok": true}'))
        await GenerationFallbackEngine([_backend("openai")], client=client).generate("t", "SYS", "USER")

        request = transport.requests[0]
        assert str(request.url) == "https://openai.example/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer key-openai"
        body = json.loads(request.content)
        assert body["temperature"] == 0.2
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"] == [{"role": "system", "content": "SYS"}, {"role": "user", "content": "USER"}]

    async def test_all_failures_upstream_error(self, mock_http):
        def handler(request):
            host = request.url.host
            if host == "openai.example":
                raise httpx.ConnectTimeout("slow", request=request)
            if host == "openrouter.example":
                return httpx.Response(500, text="boom")
            if host == "groq.example":
                return httpx.Response(200, text="<html>")
            return _completion("   ")

        client, transport = mock_http(handler)
        backends = [_backend(n) for n in ("openai", "openrouter", "groq", "cerebras")]
        result = await GenerationFallbackEngine(backends, client=client).generate("t", "s", "u")

        assert not result.ok
        assert result.error == FailureReason.generation_upstream_error
        assert len(transport.requests) == 4
        assert [a["failure"] for a in result.attempts] == ["timeout", "http_error", "bad_json", "empty_content"]
        assert all("key-" not in json.dumps(a) for a in result.attempts)
