"""
Outbound publishing through the external workflow hook.

The hook (an automation workflow) does the actual posting to social
networks; this side only forwards the approved content and its eligible
destinations. Results, including errors, are always returned explicitly.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.errors import FailureReason
from app.settings import Settings, get_settings

from .http_client import host_of, open_client

logger = logging.getLogger(__name__)


# ── Result dataclass ─────────────────────────────────────────

RETRYABLE_INDICATORS = (
    "timeout", "timed out", "429", "too many requests",
    "502", "503", "504", "connection", "reset by peer",
    "temporary", "service unavailable", "rate limit",
    "network", "ssl", "eof", "broken pipe",
)


def _is_retryable_error(error: str | None) -> bool:
    if not error:
        return False
    lower = error.lower()
    return any(ind in lower for ind in RETRYABLE_INDICATORS)


# ── Credential sanitization ──────────────────────────────────

_SENSITIVE_PATTERNS = [
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_\.]+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"(access_token|api_key|token)=[A-Za-z0-9\-_\.%]+", re.IGNORECASE), r"\1=***"),
    (re.compile(r"x-(workflow|automation)-token[\"']?\s*[:=]\s*[\"']?[A-Za-z0-9\-_\.%]+", re.IGNORECASE), r"x-\1-token=***"),
    # OpenAI-style keys
    (re.compile(r"sk-[A-Za-z0-9\-_]{8,}"), "sk-***"),
    # Generic long hex/base64 tokens (40+ chars), invite tokens included
    (re.compile(r"[A-Za-z0-9\-_]{40,}"), "***TOKEN***"),
]

SENSITIVE_KEYS = {
    "access_token", "refresh_token", "client_secret", "api_key",
    "token", "authorization", "cookie", "cookies", "x-workflow-token",
}


def _sanitize(text: str | None) -> str | None:
    """Strip credentials and tokens from error messages / response text."""
    if not text:
        return text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _sanitize_dict(d: dict | None) -> dict | None:
    """Mask sensitive keys in a response dict before persisting."""
    if not d:
        return d
    cleaned = {}
    for k, v in d.items():
        if str(k).lower() in SENSITIVE_KEYS:
            cleaned[k] = "***"
        elif isinstance(v, dict):
            cleaned[k] = _sanitize_dict(v)
        elif isinstance(v, str):
            cleaned[k] = _sanitize(v[:500])
        else:
            cleaned[k] = v
    return cleaned


@dataclass
class PublishResult:
    """Unified result of a forward attempt."""
    success: bool
    external_id: str | None = None
    error: FailureReason | None = None
    detail: str | None = None
    status_code: int | None = None
    retryable: bool = False
    raw_response: dict = field(default_factory=dict)


def _external_id(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in ("post_id", "id"):
        value = data.get(key)
        if value not in (None, ""):
            return str(value)
    return None


# ── Workflow hook ────────────────────────────────────────────

class WorkflowHookPublisher:
    """Single POST to the workflow hook, authenticated with ``x-workflow-token``."""

    def __init__(
        self,
        *,
        enabled: bool,
        url: str | None,
        token: str | None,
        timeout: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.enabled = enabled
        self.url = (url or "").strip() or None
        self.token = (token or "").strip() or None
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, *, client: httpx.AsyncClient | None = None) -> "WorkflowHookPublisher":
        return cls(
            enabled=settings.workflow_hook_enabled,
            url=settings.workflow_hook_url,
            token=settings.workflow_hook_token,
            timeout=settings.http_timeout_sec,
            client=client,
        )

    async def publish(self, payload: dict[str, Any]) -> PublishResult:
        if not self.enabled:
            return PublishResult(success=False, error=FailureReason.workflow_disabled)
        if not self.url or not self.token:
            return PublishResult(success=False, error=FailureReason.workflow_not_configured)

        try:
            async with open_client(self._client, timeout=self.timeout) as client:
                resp = await client.post(
                    self.url,
                    json=payload,
                    headers={"content-type": "application/json", "x-workflow-token": self.token},
                    timeout=self.timeout,
                )
        except httpx.HTTPError as exc:
            msg = _sanitize(f"Workflow hook request failed: {type(exc).__name__}: {exc}")
            logger.warning(f"[publish] {msg}")
            return PublishResult(
                success=False,
                error=FailureReason.workflow_upstream_error,
                detail=msg,
                retryable=_is_retryable_error(msg),
            )

        if not resp.is_success:
            msg = _sanitize(f"Workflow hook HTTP {resp.status_code}: {resp.text[:300]}")
            logger.warning(f"[publish] {msg} host={host_of(self.url)}")
            return PublishResult(
                success=False,
                error=FailureReason.workflow_upstream_error,
                detail=msg,
                status_code=resp.status_code,
                retryable=_is_retryable_error(msg),
            )

        try:
            data = resp.json()
        except ValueError:
            data = {}
        body = data if isinstance(data, dict) else {}
        return PublishResult(
            success=True,
            external_id=_external_id(body),
            status_code=resp.status_code,
            raw_response=_sanitize_dict(body) or {},
        )


_publisher: WorkflowHookPublisher | None = None


def get_publisher() -> WorkflowHookPublisher:
    global _publisher
    if _publisher is None:
        _publisher = WorkflowHookPublisher.from_settings(get_settings())
    return _publisher


def set_publisher(publisher: WorkflowHookPublisher | None) -> None:
    global _publisher
    _publisher = publisher
