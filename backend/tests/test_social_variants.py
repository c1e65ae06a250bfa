"""Per-network variants: ceilings, word boundaries, precedence."""

from dataclasses import dataclass

import pytest

from app.services.social_variants import (
    DEFAULT_TITLE,
    NETWORK_KEYS,
    NETWORK_PROFILES,
    clamp,
    format_variants,
    summary_from,
    to_hashtags,
)


@dataclass
class _Candidate:
    name: str = "Ana Rojas"
    ballot_number: str | None = "101"


LONG_WORDS = " ".join(["seguridadciudadana"] * 80)
BLOG = (
    "Balance de seguridad en Villavicencio\n"
    "\n"
    "Primer párrafo con el contexto de la noticia y los datos oficiales.\n"
    "\n"
    "Segundo párrafo con la respuesta institucional.\n"
    "\n"
    "Tercer párrafo que no entra en el resumen."
)


class TestClamp:

    def test_short_text_untouched(self):
        assert clamp("  hola mundo  ", 50) == "hola mundo"

    def test_cuts_at_whitespace(self):
        assert clamp("uno dos tres cuatro", 9) == "uno dos"

    def test_cut_exactly_on_boundary(self):
        assert clamp("uno dos tres", 7) == "uno dos"

    def test_no_boundary_drops_partial_token(self):
        assert clamp("supercalifragilistico", 5) == ""

    def test_newline_counts_as_boundary(self):
        assert clamp("titulo\nresumen largo", 10) == "titulo"


class TestHelpers:

    def test_summary_skips_title_and_takes_two_paragraphs(self):
        summary = summary_from(BLOG)
        assert summary.startswith("Primer párrafo")
        assert "Segundo párrafo" in summary
        assert "Tercer" not in summary

    def test_hashtags_sanitized_and_limited(self):
        tags = to_hashtags(["Seguridad ciudadana", "Meta!", "Villavicencio", "", "a", "b", "c", "d"])
        # only the first six keywords are considered; the empty one yields nothing
        assert tags.split() == ["#Seguridadciudadana", "#Meta", "#Villavicencio", "#a", "#b"]

    def test_hashtag_keeps_spanish_letters(self):
        assert to_hashtags(["Educación pública"]) == "#Educaciónpública"

    def test_hashtag_length_cap(self):
        assert to_hashtags(["x" * 40]) == "#" + "x" * 28


class TestFormatVariants:

    def test_all_networks_present_within_ceilings(self):
        out = format_variants(BLOG, BLOG, None, ["seguridad", "Meta"], _Candidate())
        assert set(NETWORK_KEYS) <= set(out)
        for profile in NETWORK_PROFILES:
            assert len(out[profile.name]) <= profile.max_chars
        assert out["blog"] == BLOG

    def test_title_and_templates(self):
        out = format_variants(BLOG, BLOG, None, ["seguridad"], _Candidate())
        assert out["facebook"].startswith("Balance de seguridad en Villavicencio")
        assert "Lee más en /centro-informativo" in out["facebook"]
        assert "#seguridad" in out["facebook"]
        assert out["telegram"].startswith("COMUNICADO · Balance")
        assert "Con Ana Rojas (Tarjetón 101)" in out["instagram"]
        assert "#seguridad" not in out["threads"]

    def test_default_title(self):
        out = format_variants("", None, None, None, None)
        assert out["facebook"].startswith(DEFAULT_TITLE)
        assert "blog" not in out

    def test_precomputed_variant_wins_but_is_clamped(self):
        given = {"x": LONG_WORDS, "reddit": "Texto propio", "facebook": "   "}
        out = format_variants(BLOG, BLOG, given, [], None)
        assert out["reddit"] == "Texto propio"
        assert out["facebook"].startswith("Balance")
        assert len(out["x"]) <= 280
        assert out["x"].endswith("seguridadciudadana")

    def test_unbreakable_supplied_variant_falls_back_to_template(self):
        given = {"x": "https://example.org/" + "a" * 300}
        out = format_variants("Titulo\n\nCuerpo del texto.", None, given, ["seguridad"], None)
        assert out["x"].startswith("Titulo")
        assert "Cuerpo del texto." in out["x"]
        assert len(out["x"]) <= 280

    @pytest.mark.parametrize("text", [
        LONG_WORDS,
        "Titulo\n\n" + LONG_WORDS,
        "T\n\n" + "palabra " * 200,
        "x" * 1000,
    ])
    def test_x_never_exceeds_280_or_ends_mid_word(self, text):
        out = format_variants(text, text, None, ["uno", "dos"], _Candidate())
        x = out["x"]
        assert len(x) <= 280
        tokens = set(text.split()) | {"/centro-informativo"}
        if x:
            assert x.split()[-1] in tokens
