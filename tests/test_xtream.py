"""Tests for the Xtream Codes live catalog client and the playlist URL fetcher."""

import asyncio

import httpx
import pytest

from iptvcatalog.errors import ApiError, NetworkError
from iptvcatalog.services.http_client import HttpClientService
from iptvcatalog.services.m3u_service import PlaylistFetcher
from iptvcatalog.services.proxy_rewriter import media_rewriter
from iptvcatalog.services.xtream_service import XtreamService, build_stream_url

CATEGORIES = [
    {"category_id": "1", "category_name": "News"},
    {"category_id": "2", "category_name": "Sports"},
]
STREAMS = [
    {"stream_id": 101, "name": "News One", "stream_icon": "http://img.test/n1.png",
     "category_id": "1", "container_extension": "m3u8", "epg_channel_id": "news1.epg"},
    {"stream_id": 202, "name": "Sports One", "stream_icon": "",
     "category_id": "2", "container_extension": None, "epg_channel_id": None},
    {"stream_id": 303, "name": "Orphan", "stream_icon": "",
     "category_id": "99", "container_extension": "ts", "epg_channel_id": ""},
]


def xtream_server(categories_status=200, streams_status=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        action = request.url.params.get("action")
        if action == "get_live_categories":
            return httpx.Response(categories_status, json=CATEGORIES)
        if action == "get_live_streams":
            return httpx.Response(streams_status, json=STREAMS)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def fetch(transport, rewrite=media_rewriter(False), password="pass"):
    async def run():
        http = HttpClientService(transport=transport)
        try:
            return await XtreamService(http).fetch_live_channels("http://xt.test:8080/", "user", password, rewrite)
        finally:
            await http.close()

    return asyncio.run(run())


class TestFetchLiveChannels:
    def test_maps_streams_to_channels(self):
        channels = fetch(xtream_server())
        assert [c.id for c in channels] == ["101", "202", "303"]
        news = channels[0]
        assert news.name == "News One"
        assert news.group == "News"
        assert news.logo == "http://img.test/n1.png"
        assert news.epg_id == "news1.epg"
        assert news.url == "http://xt.test:8080/live/user/pass/101.m3u8"

    def test_missing_extension_defaults_to_ts(self):
        channels = fetch(xtream_server())
        assert channels[1].url == "http://xt.test:8080/live/user/pass/202.ts"
        assert channels[1].logo is None

    def test_unknown_category_is_general(self):
        channels = fetch(xtream_server())
        assert channels[2].group == "General"

    def test_calls_are_sequential_with_credentials(self):
        seen = []
        fetch(xtream_server(seen=seen))
        assert [r.url.params["action"] for r in seen] == ["get_live_categories", "get_live_streams"]
        assert all(r.url.path == "/player_api.php" for r in seen)
        assert seen[0].url.params["username"] == "user"
        assert seen[0].url.params["password"] == "pass"

    def test_missing_password(self):
        seen = []
        channels = fetch(xtream_server(seen=seen), password=None)
        assert seen[0].url.params["password"] == ""
        assert channels[0].url == "http://xt.test:8080/live/user//101.m3u8"

    def test_secure_context_rewrites_once(self):
        channels = fetch(xtream_server(), rewrite=media_rewriter(True))
        assert channels[0].url == "/api/proxy?url=http%3A%2F%2Fxt.test%3A8080%2Flive%2Fuser%2Fpass%2F101.m3u8"
        assert channels[0].logo == "/api/proxy?url=http%3A%2F%2Fimg.test%2Fn1.png"

    def test_categories_failure(self):
        with pytest.raises(ApiError) as exc:
            fetch(xtream_server(categories_status=500))
        assert exc.value.call == "categories"

    def test_streams_failure_returns_nothing(self):
        with pytest.raises(ApiError) as exc:
            fetch(xtream_server(streams_status=403))
        assert exc.value.call == "streams"
        assert exc.value.upstream_status == 403

    def test_non_list_payload(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"user_info": {"auth": 0}}))
        with pytest.raises(ApiError) as exc:
            fetch(transport)
        assert exc.value.call == "categories"

    def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            fetch(httpx.MockTransport(handler))

    def test_records_without_stream_id_are_skipped(self):
        def handler(request):
            if request.url.params["action"] == "get_live_categories":
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[{"name": "Broken"}, {"stream_id": 7, "name": "Ok"}])

        channels = fetch(httpx.MockTransport(handler))
        assert [c.id for c in channels] == ["7"]


    def test_numeric_text_fields_are_coerced(self):
        def handler(request):
            if request.url.params["action"] == "get_live_categories":
                return httpx.Response(200, json=[{"category_id": 1, "category_name": 2024}])
            return httpx.Response(200, json=[
                {"stream_id": 9, "name": 123, "stream_icon": 0, "category_id": 1, "epg_channel_id": 456},
            ])

        channel = fetch(httpx.MockTransport(handler))[0]
        assert channel.name == "123"
        assert channel.logo == "0"
        assert channel.group == "2024"
        assert channel.epg_id == "456"


def test_build_stream_url():
    assert build_stream_url("http://h", "u", None, 5, None) == "http://h/live/u//5.ts"


class TestPlaylistFetcher:
    def run(self, transport, url="http://lists.test/tv.m3u"):
        async def go():
            http = HttpClientService(transport=transport)
            try:
                return await PlaylistFetcher(http).fetch_and_parse(url)
            finally:
                await http.close()

        return asyncio.run(go())

    def test_fetch_and_parse(self):
        body = "#EXTM3U\n#EXTINF:-1 group-title=\"News\",News One\nhttp://a.test/news1\n"
        channels = self.run(httpx.MockTransport(lambda request: httpx.Response(200, text=body)))
        assert [c.name for c in channels] == ["News One"]

    def test_http_error_status(self):
        with pytest.raises(ApiError) as exc:
            self.run(httpx.MockTransport(lambda request: httpx.Response(404)))
        assert exc.value.call == "playlist"

    def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(NetworkError):
            self.run(httpx.MockTransport(handler))
