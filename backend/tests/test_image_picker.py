"""Commons image search and Open Graph fallback."""

import random

import httpx

from app.services.image_picker import (
    ImagePicker,
    ImageResult,
    choose_image,
    extract_social_image,
    is_allowed_license,
    normalize_query,
    parse_commons_payload,
)

COMMONS_URL = "https://commons.example/w/api.php"


def _page(title, url, license_short, mime="image/jpeg", artist=None):
    ext = {"LicenseShortName": {"value": license_short}}
    if artist:
        ext["Artist"] = {"value": artist}
    return {
        "title": title,
        "imageinfo": [{"url": url, "thumburl": url + "?w=1400", "mime": mime, "extmetadata": ext}],
    }


COMMONS_PAYLOAD = {
    "query": {
        "pages": {
            "1": _page("File:Villavicencio plaza.jpg", "https://upload.example/plaza.jpg", "CC BY-SA 4.0",
                       artist='<a href="https://x">Juan Pérez</a>'),
            "2": _page("File:Decreto 123.pdf", "https://upload.example/decreto.pdf", "CC0", mime="application/pdf"),
            "3": _page("File:Logo.png", "https://upload.example/logo.png", "Fair use"),
            "4": _page("File:Boletin oficial.jpg", "https://upload.example/boletin.jpg", "Public domain"),
            "5": _page("File:Rio Guatiquia.jpg", "https://upload.example/rio.jpg", "Public domain"),
        }
    }
}


class TestLicensing:

    def test_allow_list(self):
        assert is_allowed_license("CC BY 4.0")
        assert is_allowed_license("CC BY-SA 3.0")
        assert is_allowed_license("Public domain")
        assert is_allowed_license("PD-US")
        assert is_allowed_license("CC0")
        assert not is_allowed_license("Fair use")
        assert not is_allowed_license("All rights reserved")
        assert not is_allowed_license(None)

    def test_parse_filters_mime_documents_and_licenses(self):
        results = parse_commons_payload(COMMONS_PAYLOAD)
        urls = sorted(r.image_url for r in results)
        assert urls == ["https://upload.example/plaza.jpg", "https://upload.example/rio.jpg"]
        plaza = next(r for r in results if r.image_url.endswith("plaza.jpg"))
        assert plaza.author == "Juan Pérez"
        assert plaza.page_url == "https://commons.wikimedia.org/wiki/File:Villavicencio_plaza.jpg"

    def test_parse_malformed(self):
        assert parse_commons_payload(None) == []
        assert parse_commons_payload({"query": {"pages": []}}) == []
        assert parse_commons_payload({"query": None}) == []
        assert parse_commons_payload({"query": "batchcomplete"}) == []


class TestChooseImage:

    def test_avoid_urls_respected(self):
        pool = [ImageResult(image_url="a"), ImageResult(image_url="b")]
        for seed in range(10):
            assert choose_image(pool, {"a"}, random.Random(seed)).image_url == "b"

    def test_avoid_everything_reuses_pool(self):
        pool = [ImageResult(image_url="a"), ImageResult(image_url="b")]
        picked = choose_image(pool, {"a", "b"}, random.Random(1))
        assert picked.image_url in {"a", "b"}

    def test_empty_pool(self):
        assert choose_image([], set(), random.Random(0)) is None


class TestPickImage:

    async def test_request_shape_and_pick(self, mock_http):
        client, transport = mock_http(lambda r: httpx.Response(200, json=COMMONS_PAYLOAD))
        picker = ImagePicker(api_url=COMMONS_URL, client=client, rng=random.Random(3))
        picked = await picker.pick_image("  Meta   Colombia ", ["https://upload.example/plaza.jpg"])
        assert picked.image_url == "https://upload.example/rio.jpg"
        assert picked.source == "wikimedia_commons"

        params = transport.requests[0].url.params
        assert params["generator"] == "search"
        assert params["gsrnamespace"] == "6"
        assert params["gsrlimit"] == "18"
        assert params["iiprop"] == "url|mime|extmetadata"
        assert params["gsrsearch"] == "Meta Colombia"

    async def test_failure_returns_none(self, mock_http):
        client, _ = mock_http(lambda r: httpx.Response(503))
        assert await ImagePicker(api_url=COMMONS_URL, client=client).pick_image("Meta") is None

    async def test_null_query_block_returns_none(self, mock_http):
        client, _ = mock_http(lambda r: httpx.Response(200, json={"batchcomplete": "", "query": None}))
        assert await ImagePicker(api_url=COMMONS_URL, client=client).pick_image("Meta") is None

    async def test_empty_query_makes_no_call(self, mock_http):
        client, transport = mock_http(lambda r: httpx.Response(200, json=COMMONS_PAYLOAD))
        assert await ImagePicker(api_url=COMMONS_URL, client=client).pick_image("   ") is None
        assert transport.requests == []

    def test_normalize_query_bounds_length(self):
        assert len(normalize_query("palabra " * 100)) == 180


class TestSocialImage:

    def test_og_image_resolved_against_page(self):
        html = '<html><head><meta property="og:image" content="/img/cover.jpg"></head></html>'
        assert extract_social_image(html, "https://diario.example/nota/1") == "https://diario.example/img/cover.jpg"

    def test_twitter_fallback_by_name(self):
        html = '<head><meta name="twitter:image" content="https://cdn.example/t.jpg"></head>'
        assert extract_social_image(html, "https://diario.example/") == "https://cdn.example/t.jpg"

    def test_rejects_non_http_schemes(self):
        html = '<head><meta property="og:image" content="javascript:alert(1)"></head>'
        assert extract_social_image(html, "https://diario.example/") is None

    async def test_from_article(self, mock_http):
        html = '<html><head><meta property="og:image" content="https://cdn.example/og.jpg"></head><body></body></html>'
        client, _ = mock_http(lambda r: httpx.Response(200, text=html, headers={"content-type": "text/html"}))
        picked = await ImagePicker(client=client).from_article("https://diario.example/nota")
        assert picked.image_url == "https://cdn.example/og.jpg"
        assert picked.source == "opengraph"
        assert picked.page_url == "https://diario.example/nota"

    async def test_from_article_failure(self, mock_http):
        client, _ = mock_http(lambda r: httpx.Response(404))
        assert await ImagePicker(client=client).from_article("https://diario.example/nota") is None
        assert await ImagePicker(client=client).from_article("mailto:x@example.com") is None
