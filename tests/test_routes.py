"""Integration tests: hit actual FastAPI routes via Starlette TestClient."""

import json

import httpx
import pytest
from starlette.testclient import TestClient

from iptvcatalog.main import create_app

PLAYLIST = (
    "#EXTM3U\n"
    '#EXTINF:-1 tvg-name="News One" group-title="News",News One\n'
    "http://a.test/news1\n"
    '#EXTINF:-1 tvg-name="Sports One" group-title="Sports",Sports One\n'
    "http://a.test/sports1\n"
)


def upstream(request: httpx.Request) -> httpx.Response:
    """Fake network shared by the worker host and the proxy endpoint."""
    host = request.url.host
    if host == "down.test":
        raise httpx.ConnectError("connection refused", request=request)
    if host == "lists.test":
        if request.url.path == "/tv.m3u":
            return httpx.Response(200, text=PLAYLIST)
        return httpx.Response(404)
    if host == "xt.test":
        if request.url.params["action"] == "get_live_categories":
            return httpx.Response(200, json=[{"category_id": "1", "category_name": "News"}])
        return httpx.Response(401, json={"user_info": {"auth": 0}})
    if host == "media.test":
        body = json.dumps({
            "method": request.method,
            "user_agent": request.headers.get("user-agent"),
            "accept": request.headers.get("accept"),
            "range": request.headers.get("range"),
            "body": request.content.decode(),
        })
        status = 206 if "range" in request.headers else 200
        return httpx.Response(
            status,
            content=body.encode(),
            headers={"content-type": "application/json", "x-upstream": "media"},
        )
    return httpx.Response(404)


@pytest.fixture()
def data_dir(tmp_path):
    """Create a temporary data directory with a minimal config."""
    (tmp_path / "config.json").write_text(json.dumps({"options": {}}))
    return str(tmp_path)


@pytest.fixture()
def client(data_dir):
    app = create_app(data_dir, transport=httpx.MockTransport(upstream))
    with TestClient(app) as c:
        yield c


def file_source(text=PLAYLIST):
    return {"kind": "FILE", "source": text}


# -------------------------------------------------------------------
# Health / Version
# -------------------------------------------------------------------

def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_version(client):
    r = client.get("/api/version")
    assert r.status_code == 200
    assert "current" in r.json()


def test_json_charset(client):
    r = client.get("/health")
    assert r.headers["content-type"] == "application/json; charset=utf-8"


# -------------------------------------------------------------------
# Options API
# -------------------------------------------------------------------

def test_options_get_defaults(client):
    r = client.get("/api/options")
    assert r.status_code == 200
    data = r.json()
    assert data["secure_context"] is None
    assert data["fetch_via_proxy"] is False
    assert data["debounce_ms"] == 300


def test_options_update_persists(client, data_dir):
    r = client.post("/api/options", json={"history_limit": 10})
    assert r.status_code == 200
    assert r.json()["options"]["history_limit"] == 10

    with open(f"{data_dir}/config.json") as f:
        assert json.load(f)["options"]["history_limit"] == 10


def test_options_rejects_invalid(client):
    r = client.post("/api/options", json={"fetch_timeout": "soon"})
    assert r.status_code == 422

    r = client.post("/api/options", json=["not", "an", "object"])
    assert r.status_code == 400


# -------------------------------------------------------------------
# Catalog API
# -------------------------------------------------------------------

def test_load_file(client):
    r = client.post("/api/playlists/load", json=file_source())
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "success"
    assert data["kind"] == "LOAD"
    assert [c["name"] for c in data["data"]] == ["News", "Sports"]
    assert data["data"][0]["channels"][0]["url"] == "http://a.test/news1"


def test_channels_serialize_epg_alias(client):
    text = '#EXTM3U\n#EXTINF:-1 tvg-id="bbc1.uk" group-title="UK",BBC One\nhttp://a.test/bbc1\n'
    channel = client.post("/api/playlists/load", json=file_source(text)).json()["data"][0]["channels"][0]
    assert channel["epgId"] == "bbc1.uk"

    r = client.post("/api/channels/filter", json={"all_channels": [channel]})
    assert r.json()["data"][0]["epgId"] == "bbc1.uk"


def test_options_update_restarts_worker(client):
    client.post("/api/playlists/load", json=file_source())
    r = client.post("/api/options", json={"fetch_timeout": 5})
    assert r.status_code == 200
    assert client.get("/health").json()["worker"] == "idle"
    assert client.post("/api/playlists/load", json=file_source()).status_code == 200


def test_load_url(client):
    r = client.post("/api/playlists/load", json={"kind": "URL", "source": "http://lists.test/tv.m3u"})
    assert r.status_code == 200
    assert len(r.json()["data"]) == 2


def test_load_behind_https_proxy_rewrites_urls(client):
    r = client.post("/api/playlists/load", json=file_source(), headers={"X-Forwarded-Proto": "https"})
    channel = r.json()["data"][0]["channels"][0]
    assert channel["url"] == "/api/proxy?url=http%3A%2F%2Fa.test%2Fnews1"


def test_secure_context_option_overrides_scheme(client):
    client.post("/api/options", json={"secure_context": True})
    r = client.post("/api/playlists/load", json=file_source())
    assert r.json()["data"][0]["channels"][0]["url"].startswith("/api/proxy?url=")


def test_load_format_error(client):
    r = client.post("/api/playlists/load", json=file_source("hello"))
    assert r.status_code == 422
    data = r.json()
    assert data["status"] == "error"
    assert data["error_type"] == "FormatError"
    assert "call" not in data


def test_load_missing_playlist_is_api_error(client):
    r = client.post("/api/playlists/load", json={"kind": "URL", "source": "http://lists.test/missing.m3u"})
    assert r.status_code == 502
    assert r.json()["error_type"] == "ApiError"
    assert r.json()["call"] == "playlist"


def test_load_network_error(client):
    r = client.post("/api/playlists/load", json={"kind": "URL", "source": "http://down.test/tv.m3u"})
    assert r.status_code == 502
    assert r.json()["error_type"] == "NetworkError"


def test_load_xtream_streams_failure(client):
    source = {"kind": "XTREAM", "source": "http://xt.test", "credentials": {"username": "u", "password": "p"}}
    r = client.post("/api/playlists/load", json=source)
    assert r.status_code == 502
    assert r.json()["call"] == "streams"


def test_xtream_requires_credentials(client):
    r = client.post("/api/playlists/load", json={"kind": "XTREAM", "source": "http://xt.test"})
    assert r.status_code == 422


def test_load_empty_playlist_is_allowed(client):
    r = client.post("/api/playlists/load", json=file_source("#EXTM3U\n"))
    assert r.status_code == 200
    assert r.json()["data"] == []


def test_add_empty_playlist_is_rejected(client):
    r = client.post("/api/playlists/add", json=file_source("#EXTM3U\n"))
    assert r.status_code == 422
    data = r.json()
    assert data["kind"] == "ADD"
    assert data["error_type"] == "EmptyResultError"


def test_add_file(client):
    r = client.post("/api/playlists/add", json=file_source())
    assert r.status_code == 200
    assert r.json()["kind"] == "ADD"


def test_filter_flow(client):
    categories = client.post("/api/playlists/load", json=file_source()).json()["data"]
    channels = [c for cat in categories for c in cat["channels"]]

    r = client.post("/api/channels/filter", json={"all_channels": channels, "search_term": "sports"})
    assert r.status_code == 200
    data = r.json()
    assert data["kind"] == "FILTER"
    assert [c["name"] for c in data["data"]] == ["Sports One"]

    r = client.post("/api/channels/filter", json={
        "all_channels": channels,
        "view": "history",
        "history": [channels[1]["id"], channels[0]["id"]],
    })
    assert [c["name"] for c in r.json()["data"]] == ["Sports One", "News One"]


def test_filter_favorites_keep_catalog_order(client):
    categories = client.post("/api/playlists/load", json=file_source()).json()["data"]
    channels = [c for cat in categories for c in cat["channels"]]
    r = client.post("/api/channels/filter", json={
        "all_channels": channels,
        "view": "favorites",
        "favorites": [channels[1]["id"], channels[0]["id"]],
    })
    assert [c["name"] for c in r.json()["data"]] == ["News One", "Sports One"]


# -------------------------------------------------------------------
# Proxy
# -------------------------------------------------------------------

def test_proxy_requires_url(client):
    r = client.get("/api/proxy")
    assert r.status_code == 400
    assert "error" in r.json()


def test_proxy_rejects_relative_url(client):
    r = client.get("/api/proxy", params={"url": "/etc/passwd"})
    assert r.status_code == 400


def test_proxy_passthrough(client):
    r = client.get("/api/proxy", params={"url": "http://media.test/live.ts"}, headers={"Accept": "video/*"})
    assert r.status_code == 200
    assert r.headers["x-upstream"] == "media"
    echoed = r.json()
    assert echoed["method"] == "GET"
    assert echoed["user_agent"].startswith("VLC/")
    assert echoed["accept"] == "video/*"


def test_proxy_forwards_range(client):
    r = client.get("/api/proxy", params={"url": "http://media.test/live.ts"}, headers={"Range": "bytes=0-99"})
    assert r.status_code == 206
    assert r.json()["range"] == "bytes=0-99"


def test_proxy_keeps_method_and_body(client):
    r = client.post("/api/proxy", params={"url": "http://media.test/api"}, content=b"payload")
    echoed = r.json()
    assert echoed["method"] == "POST"
    assert echoed["body"] == "payload"


def test_proxy_bad_gateway(client):
    r = client.get("/api/proxy", params={"url": "http://down.test/live.ts"})
    assert r.status_code == 502
    assert r.json()["error"] == "Bad gateway"
