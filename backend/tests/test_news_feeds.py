"""Headline index client and RSS/Atom reader."""

from datetime import datetime, timezone

import httpx

from app.services.news_feeds import (
    FeedReader,
    FeedSource,
    HeadlineIndexClient,
    parse_feed,
    parse_index_payload,
    parse_seendate,
)

INDEX_URL = "https://index.example/api/v2/doc/doc"

SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Llano Noticias</title>
    <item>
      <title>Balance de seguridad en Villavicencio</title>
      <link>https://llano.example/seguridad/balance</link>
      <pubDate>Sun, 01 Mar 2026 09:00:00 +0000</pubDate>
      <media:content url="https://llano.example/img/balance.jpg" />
    </item>
    <item>
      <title>   </title>
      <link>https://llano.example/sin-titulo</link>
    </item>
    <item>
      <title>Nota relativa</title>
      <link>/notas/relativa</link>
      <enclosure url="https://llano.example/audio/nota.mp3" type="audio/mpeg" length="1200" />
      <enclosure url="https://llano.example/img/nota.jpg" type="image/jpeg" length="900" />
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Test</title>
  <entry>
    <title>Consejo de seguridad regional</title>
    <link href="https://atom.example/consejo"/>
    <updated>2026-03-01T08:00:00Z</updated>
  </entry>
</feed>"""


class TestParseSeendate:

    def test_index_format(self):
        assert parse_seendate("20260301T080000Z") == datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)

    def test_invalid(self):
        assert parse_seendate("yesterday") is None
        assert parse_seendate(None) is None


class TestParseIndexPayload:

    def test_keeps_valid_articles(self):
        data = {
            "articles": [
                {"title": "Uno", "url": "https://a.com.co/1", "seendate": "20260301T080000Z",
                 "sourcecountry": "Colombia", "domain": "a.com.co"},
                {"title": "", "url": "https://a.com.co/2"},
                {"title": "Sin esquema", "url": "ftp://a.com.co/3"},
                {"title": "Camel", "url": "https://b.com/4", "sourceCountry": "Spain"},
                "garbage",
            ]
        }
        articles = parse_index_payload(data)
        assert [a.url for a in articles] == ["https://a.com.co/1", "https://b.com/4"]
        assert articles[0].source_country == "Colombia"
        assert articles[0].published_at is not None
        assert articles[1].source_country == "Spain"
        assert articles[1].source_name == "b.com"

    def test_malformed_payloads(self):
        assert parse_index_payload(None) == []
        assert parse_index_payload({"articles": "nope"}) == []
        assert parse_index_payload([]) == []


class TestHeadlineIndexClient:

    async def test_search_sends_list_params(self, mock_http):
        client, transport = mock_http(lambda r: httpx.Response(200, json={"articles": []}))
        index = HeadlineIndexClient(INDEX_URL, client=client, max_records=25)
        assert await index.search("Meta Colombia seguridad") == []

        params = transport.requests[0].url.params
        assert params["mode"] == "ArtList"
        assert params["format"] == "json"
        assert params["maxrecords"] == "25"
        assert params["sort"] == "HybridRel"
        assert params["query"] == "Meta Colombia seguridad"

    async def test_user_agent_sent_through_shared_client(self, mock_http):
        client, transport = mock_http(lambda r: httpx.Response(200, json={"articles": []}))
        await HeadlineIndexClient(INDEX_URL, client=client, user_agent="civic-relay/0.1").search("x")
        assert transport.requests[0].headers["user-agent"] == "civic-relay/0.1"

    async def test_non_2xx_yields_empty(self, mock_http):
        client, _ = mock_http(lambda r: httpx.Response(429, text="slow down"))
        assert await HeadlineIndexClient(INDEX_URL, client=client).search("x") == []

    async def test_invalid_json_yields_empty(self, mock_http):
        client, _ = mock_http(lambda r: httpx.Response(200, text="<html>oops</html>"))
        assert await HeadlineIndexClient(INDEX_URL, client=client).search("x") == []

    async def test_network_error_yields_empty(self, mock_http):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        client, _ = mock_http(boom)
        assert await HeadlineIndexClient(INDEX_URL, client=client).search("x") == []

    async def test_timeout_yields_empty(self, mock_http):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = mock_http(slow)
        assert await HeadlineIndexClient(INDEX_URL, client=client).search("x") == []


class TestParseFeed:

    def test_rss_items(self):
        source = FeedSource(name="llano", url="https://llano.example/rss")
        items = parse_feed(SAMPLE_RSS, source)
        assert [i.url for i in items] == [
            "https://llano.example/seguridad/balance",
            "https://llano.example/notas/relativa",
        ]
        first = items[0]
        assert first.provider == "rss"
        assert first.source_name == "llano"
        assert first.published_at == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert first.image_urls == ["https://llano.example/img/balance.jpg"]
        # audio enclosures are not images
        assert items[1].image_urls == ["https://llano.example/img/nota.jpg"]

    def test_atom_entries(self):
        items = parse_feed(SAMPLE_ATOM, FeedSource(name="atom", url="https://atom.example/feed"))
        assert len(items) == 1
        assert items[0].title == "Consejo de seguridad regional"
        assert items[0].published_at is not None

    def test_limit(self):
        items = parse_feed(SAMPLE_RSS, FeedSource(name="llano", url="https://llano.example/rss"), limit=1)
        assert len(items) == 1

    def test_garbage_content(self):
        assert parse_feed("not a feed", FeedSource(name="x", url="https://x.example")) == []


class TestFeedReader:

    async def test_fetch(self, mock_http):
        client, _ = mock_http(lambda r: httpx.Response(200, content=SAMPLE_RSS.encode("utf-8")))
        items = await FeedReader(client=client).fetch(FeedSource(name="llano", url="https://llano.example/rss"))
        assert len(items) == 2

    async def test_fetch_error_returns_empty(self, mock_http):
        client, _ = mock_http(lambda r: httpx.Response(500))
        assert await FeedReader(client=client).fetch(FeedSource(name="x", url="https://x.example/rss")) == []

    async def test_user_agent_sent_through_shared_client(self, mock_http):
        client, transport = mock_http(lambda r: httpx.Response(200, content=SAMPLE_RSS.encode("utf-8")))
        reader = FeedReader(client=client, user_agent="civic-relay/0.1")
        await reader.fetch(FeedSource(name="llano", url="https://llano.example/rss"))
        assert transport.requests[0].headers["user-agent"] == "civic-relay/0.1"
