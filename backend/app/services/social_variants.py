"""
Per-network copy derived from one generated blog text.

Each network is described by a ``NetworkProfile`` and rendered by the same
function; a caller-supplied variant for a network wins over the rendered
fallback, but is still clamped to the network ceiling.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

DEFAULT_TITLE = "Centro informativo ciudadano"
INFO_CENTER_PATH = "/centro-informativo"
SUMMARY_CHARS = 900
BLOG_MAX_CHARS = 12000
MAX_KEYWORDS = 16
MAX_HASHTAGS = 6
MAX_HASHTAG_CHARS = 28

_HASHTAG_STRIP_RE = re.compile(r"[^A-Za-z0-9áéíóúüñÁÉÍÓÚÜÑ]+")
_PARAGRAPH_RE = re.compile(r"\n{2,}")
_TRAILING_WORD_RE = re.compile(r"\s+\S*$")


@dataclass(frozen=True)
class NetworkProfile:
    name: str
    max_chars: int
    summary_chars: int
    headline_prefix: str = ""
    call_to_action: tuple[str, ...] = ()
    hashtags: bool = False
    flatten_summary: bool = False
    candidate_line: bool = False


NETWORK_PROFILES: tuple[NetworkProfile, ...] = (
    NetworkProfile(
        name="facebook",
        max_chars=1100,
        summary_chars=820,
        call_to_action=(f"Lee más en {INFO_CENTER_PATH}",),
        hashtags=True,
    ),
    NetworkProfile(
        name="instagram",
        max_chars=1100,
        summary_chars=300,
        hashtags=True,
        flatten_summary=True,
        candidate_line=True,
    ),
    NetworkProfile(
        name="threads",
        max_chars=1100,
        summary_chars=520,
        call_to_action=("¿Qué cambiarías tú para que esto no se repita? Te leo.",),
    ),
    NetworkProfile(
        name="x",
        max_chars=280,
        summary_chars=220,
        call_to_action=(INFO_CENTER_PATH,),
        flatten_summary=True,
    ),
    NetworkProfile(
        name="telegram",
        max_chars=3800,
        summary_chars=1400,
        headline_prefix="COMUNICADO · ",
        call_to_action=(f"Consulta el análisis completo en {INFO_CENTER_PATH}",),
        hashtags=True,
    ),
    NetworkProfile(
        name="reddit",
        max_chars=3800,
        summary_chars=1200,
        call_to_action=(
            f"Contexto: {INFO_CENTER_PATH}",
            "Pregunta abierta: ¿cómo debería responder el Estado y la ciudadanía ante este tipo de situaciones?",
        ),
    ),
)

NETWORK_KEYS = tuple(p.name for p in NETWORK_PROFILES)


def clamp(text: str | None, max_chars: int) -> str:
    """Trim to ``max_chars`` at a whitespace boundary; a cut word is dropped whole."""
    s = (text or "").strip()
    if len(s) <= max_chars:
        return s
    cut = s[:max_chars]
    if not s[max_chars].isspace():
        cut = _TRAILING_WORD_RE.sub("", cut) if re.search(r"\s", cut) else ""
    return cut.rstrip()


def first_line(text: str | None) -> str:
    for line in (text or "").replace("\r", "").split("\n"):
        if line.strip():
            return line.strip()
    return ""


def summary_from(text: str | None, max_chars: int = SUMMARY_CHARS) -> str:
    """First two paragraphs after the title line."""
    raw = (text or "").replace("\r", "").strip()
    if not raw:
        return ""
    lines = [line.strip() for line in raw.split("\n")]
    rest = "\n".join(lines[1:]).strip()
    paragraphs = [p.strip() for p in _PARAGRAPH_RE.split(rest) if p.strip()]
    picked = "\n\n".join(paragraphs[:2]).strip()
    return clamp(picked or rest, max_chars)


def clean_keywords(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [k.strip() for k in value if isinstance(k, str) and k.strip()][:MAX_KEYWORDS]


def to_hashtags(keywords: list[str], max_count: int = MAX_HASHTAGS) -> str:
    tags = []
    for keyword in keywords[:max_count]:
        tag = _HASHTAG_STRIP_RE.sub("", keyword)[:MAX_HASHTAG_CHARS]
        if tag:
            tags.append(f"#{tag}")
    return " ".join(tags)


def candidate_line(candidate: Any) -> str:
    name = str(getattr(candidate, "name", None) or "").strip()
    if not name:
        return "Seguridad proactiva y ciudadanía: lo que está en juego."
    ballot = getattr(candidate, "ballot_number", None)
    suffix = f" (Tarjetón {ballot})" if ballot else ""
    return f"Con {name}{suffix}, trabajamos por seguridad proactiva y ciudadanía."


def render_profile(
    profile: NetworkProfile,
    *,
    title: str,
    summary: str,
    hashtags: str,
    candidate: Any = None,
) -> str:
    body = " ".join(summary.split()) if profile.flatten_summary else summary
    blocks = [f"{profile.headline_prefix}{title}"]
    if profile.candidate_line:
        blocks.append(candidate_line(candidate))
    blocks.append(clamp(body, profile.summary_chars))
    blocks.extend(profile.call_to_action)
    if profile.hashtags:
        blocks.append(hashtags)
    return clamp("\n\n".join(b for b in blocks if b), profile.max_chars)


def format_variants(
    base_text: str,
    blog_text: str | None = None,
    precomputed_variants: Mapping[str, Any] | None = None,
    keywords: Any = None,
    candidate: Any = None,
) -> dict[str, str]:
    base = (base_text or "").strip()
    blog = (blog_text or "").strip()
    title = first_line(blog or base) or DEFAULT_TITLE
    summary = summary_from(blog or base)
    hashtags = to_hashtags(clean_keywords(keywords))
    supplied = precomputed_variants if isinstance(precomputed_variants, Mapping) else {}

    out: dict[str, str] = {}
    for profile in NETWORK_PROFILES:
        given = supplied.get(profile.name)
        # a supplied variant that clamps to nothing falls back to the template
        text = clamp(given, profile.max_chars) if isinstance(given, str) else ""
        out[profile.name] = text or render_profile(
            profile, title=title, summary=summary, hashtags=hashtags, candidate=candidate
        )

    given_blog = supplied.get("blog")
    blog_source = given_blog if isinstance(given_blog, str) and given_blog.strip() else blog
    if blog_source:
        out["blog"] = clamp(blog_source, BLOG_MAX_CHARS)
    return out
