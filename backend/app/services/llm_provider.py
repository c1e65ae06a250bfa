"""
Completion backends and the fallback engine used for draft generation.

Backends are OpenAI-compatible chat-completion endpoints. The engine walks
them in a fixed order (openai -> openrouter -> groq -> cerebras) and returns
the first parseable JSON object. There are no retries of the same backend
and no backoff: a human re-triggers the action if everything fails.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.errors import FailureReason
from app.settings import Settings, get_settings

from .http_client import host_of, open_client

logger = logging.getLogger(__name__)

GENERATION_TEMPERATURE = 0.2
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class CompletionBackend:
    name: str
    base_url: str
    api_key: str = field(repr=False)
    model: str

    @property
    def host(self) -> str | None:
        return host_of(self.base_url)


@dataclass
class GenerationResult:
    """Outcome of one generation request. ``data`` is set only when ``ok``."""
    ok: bool
    data: dict[str, Any] | None = None
    error: FailureReason | None = None
    provider: str | None = None
    attempts: list[dict[str, Any]] = field(default_factory=list)

    def to_meta(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "provider": self.provider,
            "error": self.error.value if self.error else None,
            "attempts": self.attempts,
        }


def normalize_secret(raw: str | None) -> str:
    value = (raw or "").strip()
    # copied secrets sometimes keep a literal trailing "\n"
    if value.endswith("\\n"):
        value = value[:-2].strip()
    return value


def normalize_base_url(raw: str) -> str:
    base = (raw or "").strip().rstrip("/")
    return base[:-3] if base.endswith("/v1") else base


def build_backends(settings: Settings) -> list[CompletionBackend]:
    """Ordered backend registry; a backend is listed only when fully configured."""
    backends: list[CompletionBackend] = []

    openai_key = normalize_secret(settings.openai_api_key)
    if openai_key:
        backends.append(
            CompletionBackend(
                name="openai",
                base_url=normalize_base_url(settings.openai_base_url or "https://api.openai.com"),
                api_key=openai_key,
                model=(settings.openai_model or "").strip() or DEFAULT_OPENAI_MODEL,
            )
        )

    for name, key, model, base_url, default_base in (
        ("openrouter", settings.openrouter_api_key, settings.openrouter_model,
         settings.openrouter_base_url, "https://openrouter.ai/api"),
        ("groq", settings.groq_api_key, settings.groq_model,
         settings.groq_base_url, "https://api.groq.com/openai"),
        ("cerebras", settings.cerebras_api_key, settings.cerebras_model,
         settings.cerebras_base_url, "https://api.cerebras.ai"),
    ):
        secret = normalize_secret(key)
        model_name = (model or "").strip()
        if secret and model_name:
            backends.append(
                CompletionBackend(
                    name=name,
                    base_url=normalize_base_url(base_url or default_base),
                    api_key=secret,
                    model=model_name,
                )
            )

    return backends


def pick_completion_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else None
    return content.strip() if isinstance(content, str) else ""


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Parse a JSON object, tolerating markdown fences or chatter around it."""
    t = (text or "").strip()
    if not t:
        return None
    try:
        parsed = json.loads(t)
    except ValueError:
        start, end = t.find("{"), t.rfind("}")
        if start < 0 or end <= start:
            return None
        try:
            parsed = json.loads(t[start:end + 1])
        except ValueError:
            return None
    return parsed if isinstance(parsed, dict) else None


class GenerationFallbackEngine:
    def __init__(
        self,
        backends: list[CompletionBackend],
        *,
        enabled: bool | None = None,
        timeout: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.backends = list(backends)
        self._enabled = enabled
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, *, client: httpx.AsyncClient | None = None) -> "GenerationFallbackEngine":
        return cls(
            build_backends(settings),
            enabled=settings.generation_enabled,
            timeout=settings.http_timeout_sec,
            client=client,
        )

    @property
    def enabled(self) -> bool:
        # only an explicit false switches generation off
        return self._enabled is not False

    async def generate(self, task: str, system_prompt: str, user_prompt: str) -> GenerationResult:
        if not self.enabled:
            return GenerationResult(ok=False, error=FailureReason.generation_disabled)
        if not self.backends:
            return GenerationResult(ok=False, error=FailureReason.generation_not_configured)

        attempts: list[dict[str, Any]] = []
        async with open_client(self._client, timeout=self.timeout) as client:
            for backend in self.backends:
                data, attempt = await self._complete(client, backend, system_prompt, user_prompt)
                attempts.append(attempt)
                if data is not None:
                    logger.info(f"[llm] task={task} served by {backend.name}")
                    return GenerationResult(ok=True, data=data, provider=backend.name, attempts=attempts)
                logger.warning(
                    f"[llm] task={task} backend={backend.name} failed: {attempt['failure']} (status={attempt['status']})"
                )

        return GenerationResult(ok=False, error=FailureReason.generation_upstream_error, attempts=attempts)

    async def _complete(
        self,
        client: httpx.AsyncClient,
        backend: CompletionBackend,
        system_prompt: str,
        user_prompt: str,
    ) -> tuple[dict[str, Any] | None, dict[str, Any]]:
        attempt: dict[str, Any] = {"provider": backend.name, "host": backend.host, "status": None, "failure": None}
        payload = {
            "model": backend.model,
            "temperature": GENERATION_TEMPERATURE,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
        }
        try:
            resp = await client.post(
                f"{backend.base_url}/v1/chat/completions",
                headers={"authorization": f"Bearer {backend.api_key}", "content-type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            attempt["failure"] = "timeout"
            return None, attempt
        except httpx.HTTPError:
            attempt["failure"] = "network_error"
            return None, attempt

        attempt["status"] = resp.status_code
        if not resp.is_success:
            attempt["failure"] = "http_error"
            return None, attempt
        try:
            envelope = resp.json()
        except ValueError:
            attempt["failure"] = "bad_json"
            return None, attempt

        text = pick_completion_text(envelope)
        if not text:
            attempt["failure"] = "empty_content"
            return None, attempt
        parsed = parse_json_object(text)
        if parsed is None:
            attempt["failure"] = "unparseable_content"
            return None, attempt
        return parsed, attempt


_engine: GenerationFallbackEngine | None = None


def get_generation_engine() -> GenerationFallbackEngine:
    global _engine
    if _engine is None:
        _engine = GenerationFallbackEngine.from_settings(get_settings())
    return _engine


def set_generation_engine(engine: GenerationFallbackEngine | None) -> None:
    global _engine
    _engine = engine
