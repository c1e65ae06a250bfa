"""
Shared httpx helpers for outbound calls.

Every outbound call is bounded by a timeout; callers may inject a shared
``httpx.AsyncClient`` (tests pass one built on ``httpx.MockTransport``).
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator
from urllib.parse import urljoin, urlsplit

import httpx


@asynccontextmanager
async def open_client(
    client: httpx.AsyncClient | None,
    *,
    timeout: float,
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield the injected client as-is, or a short-lived one closed on exit.
    Per-call headers go on each request so both paths send them.
    """
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own:
        yield own


def safe_http_url(raw: str | None, base: str | None = None) -> str | None:
    """Resolve ``raw`` against ``base`` and accept only well-formed http(s) URLs."""
    value = (raw or "").strip()
    if not value:
        return None
    try:
        resolved = urljoin(base, value) if base else value
        parts = urlsplit(resolved)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return resolved


def host_of(url: str | None) -> str | None:
    try:
        return urlsplit(url or "").hostname or None
    except ValueError:
        return None
