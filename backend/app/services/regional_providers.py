"""
Region-aware outlet preferences.

These are selection signals, not hard constraints: the arbiter uses them to
favour local outlets when the index returns any. Add region keys and outlets
to ``NEWS_PROVIDERS_BY_REGION`` to extend.
"""
from __future__ import annotations

from dataclasses import dataclass, field

NATIONAL_OFFICE_MARKERS = ("senado", "senate")


@dataclass(frozen=True)
class ProviderEntry:
    label: str
    url_hints: tuple[str, ...] = ()


@dataclass(frozen=True)
class RegionalHints:
    region_key: str
    preferred_sources: list[str] = field(default_factory=list)
    url_hints: list[str] = field(default_factory=list)
    country_code: str | None = None


def _entry(label: str, *hints: str) -> ProviderEntry:
    return ProviderEntry(label=label, url_hints=tuple(h.strip() for h in hints if h and h.strip()))


NEWS_PROVIDERS_BY_REGION: dict[str, list[ProviderEntry]] = {
    "meta": [
        _entry("James Informa", "jamesinforma"),
        _entry("Periódico del Meta", "periodicodelmeta"),
        _entry("Llano 7 Días", "llano7dias", "7dias", "7-dias"),
        _entry("Llano al Mundo", "llanoalmundo.com", "llanoalmundo"),
        _entry("Gobernación del Meta (Noticias)", "meta.gov.co/noticias", "meta.gov.co"),
        _entry("El Tiempo (Meta)", "eltiempo.com/colombia/otras-ciudades"),
        _entry("Medios regionales del Meta", "villavicencio", "granada", "acacias", "puerto-gaitan", "puerto-lopez"),
    ],
    "bogota": [
        _entry("El Espectador", "elespectador.com"),
        _entry("El Tiempo (Bogotá)", "eltiempo.com/bogota", "eltiempo.com"),
        _entry("Semana", "semana.com"),
        _entry("CityTV Noticias", "citytv"),
    ],
    "colombia": [
        _entry("El Tiempo", "eltiempo.com"),
        _entry("La República", "larepublica.co"),
        _entry("El Espectador", "elespectador.com"),
        _entry("Semana", "semana.com"),
        _entry("El Colombiano", "elcolombiano.com"),
        _entry("Noticias Caracol", "noticiascaracol.com"),
        _entry("RCN Noticias", "noticiasrcn.com", "rcnradio.com"),
    ],
    "default": [
        _entry("El Tiempo", "eltiempo.com"),
        _entry("La República", "larepublica.co"),
        _entry("El Espectador", "elespectador.com"),
    ],
}

COUNTRY_BY_REGION: dict[str, str | None] = {
    "meta": "CO",
    "bogota": "CO",
    "colombia": "CO",
    "default": None,
}


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        text = (value or "").strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        out.append(text)
    return out


def normalize_region_key(region: str | None, office: str | None) -> str:
    off = _norm(office)
    if any(marker in off for marker in NATIONAL_OFFICE_MARKERS):
        return "colombia"

    r = _norm(region)
    if not r:
        return "default"
    if "bogot" in r:
        return "bogota"
    if r == "meta" or "departamento del meta" in r or r.startswith("meta ("):
        return "meta"
    if "colombia" in r or "nacional" in r:
        return "colombia"
    return "default"


def regional_hints_for(office: str | None, region: str | None) -> RegionalHints:
    key = normalize_region_key(region, office)
    entries = NEWS_PROVIDERS_BY_REGION.get(key) or NEWS_PROVIDERS_BY_REGION["default"]
    return RegionalHints(
        region_key=key,
        preferred_sources=_dedupe([e.label for e in entries]),
        url_hints=_dedupe([h for e in entries for h in e.url_hints]),
        country_code=COUNTRY_BY_REGION.get(key),
    )


def news_query_for(office: str | None, region: str | None) -> str:
    """Conservative query terms; the index ranks relevance."""
    reg = (region or "").strip()
    if any(marker in _norm(office) for marker in NATIONAL_OFFICE_MARKERS):
        return "Colombia seguridad"
    if not reg:
        return "Colombia seguridad"
    return f"{reg} Colombia seguridad"
