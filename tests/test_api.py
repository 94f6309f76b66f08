from collections.abc import Iterator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from skyfix import api
from skyfix.api import app, get_client, get_config
from skyfix.client import BlueskyClient, MemorySessionStore
from skyfix.config import ServiceConfig
from skyfix.models import GalleryComposite

_CONFIG = ServiceConfig(api_url="https://api.example/", app_domain="skyfix.example")

_POSTS: dict[str, dict[str, Any]] = {
    "images": {
        "uri": "at://did:plc:alice/app.bsky.feed.post/images",
        "author": {"did": "did:plc:alice", "handle": "alice.test", "avatar": "https://cdn/avatar.jpg"},
        "record": {"$type": "app.bsky.feed.post", "text": "Two pictures"},
        "embed": {
            "$type": "app.bsky.embed.images#view",
            "images": [{"fullsize": "https://cdn/p/did/a@jpeg"}, {"fullsize": "https://cdn/p/did/b@jpeg"}],
        },
    },
    "video": {
        "uri": "at://did:plc:alice/app.bsky.feed.post/video",
        "author": {"did": "did:plc:alice", "handle": "alice.test"},
        "record": {"$type": "app.bsky.feed.post", "text": "A clip"},
        "embed": {"$type": "app.bsky.embed.video#view", "cid": "bafyvideo"},
    },
}

_PROFILE: dict[str, Any] = {
    "did": "did:plc:alice",
    "handle": "alice.test",
    "displayName": "Alice",
    "description": "Painter & cat person",
    "avatar": "https://cdn/avatar.jpg",
    "followersCount": 12,
}


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("com.atproto.identity.resolveHandle"):
        return httpx.Response(200, json={"did": "did:plc:alice"})
    if request.url.path.endswith("app.bsky.feed.getPosts"):
        rkey = request.url.params["uris"].rsplit("/", 1)[-1]
        if rkey == "broken":
            return httpx.Response(502, text="bad gateway")
        post = _POSTS.get(rkey)
        return httpx.Response(200, json={"posts": [post] if post else []})
    if request.url.path.endswith("app.bsky.actor.getProfile"):
        if request.url.params["actor"] != "alice.test":
            return httpx.Response(400, json={"error": "InvalidRequest", "message": "Profile not found"})
        return httpx.Response(200, json=_PROFILE)
    return httpx.Response(404)


def _test_client() -> Iterator[BlueskyClient]:
    with BlueskyClient(_CONFIG, MemorySessionStore(), transport=httpx.MockTransport(_handler)) as client:
        yield client


@pytest.fixture
def client() -> Iterator[TestClient]:
    app.dependency_overrides[get_config] = lambda: _CONFIG
    app.dependency_overrides[get_client] = _test_client
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_index_redirects_to_project(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 302
    assert response.headers["location"].startswith("https://github.com/")


def test_project_info(client: TestClient) -> None:
    assert client.get("/json").json()["name"] == "skyfix"


def test_post_page_renders_meta_tags(client: TestClient) -> None:
    response = client.get("/profile/alice.test/post/images")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert '<meta property="og:image" content="https://cdn/p/did/b@jpeg">' in response.text


def test_direct_image_redirect_by_index(client: TestClient) -> None:
    response = client.get("/profile/alice.test/post/images/1", params={"direct": "true"})

    assert response.status_code == 302
    assert response.headers["location"] == "https://cdn/p/did/b@jpeg"


def test_direct_image_index_out_of_range(client: TestClient) -> None:
    response = client.get("/profile/alice.test/post/images/99", params={"direct": "true"})

    assert response.status_code == 400


def test_non_numeric_index_serves_first_image(client: TestClient) -> None:
    response = client.get("/profile/alice.test/post/images/abc", params={"direct": "true"})

    assert response.headers["location"] == "https://cdn/p/did/a@jpeg"


def test_direct_video_redirect_through_proxy(client: TestClient) -> None:
    response = client.get("/profile/alice.test/post/video|", params={"direct": "true", "video_api": "true"})

    assert response.status_code == 302
    assert response.headers["location"] == "https://api.example/video/720p/did:plc:alice/bafyvideo"


def test_gallery_page(client: TestClient) -> None:
    response = client.get("/profile/alice.test/post/images", params={"gallery": "true"})

    assert "https://api.example/images/png/did/a/b" in response.text


def test_post_json_returns_raw_view(client: TestClient) -> None:
    response = client.get("/profile/alice.test/post/images/json")

    assert response.status_code == 200
    assert response.json()["uri"] == _POSTS["images"]["uri"]


def test_missing_post_is_404(client: TestClient) -> None:
    assert client.get("/profile/alice.test/post/nothing").status_code == 404


def test_upstream_failure_is_500(client: TestClient) -> None:
    response = client.get("/profile/alice.test/post/broken")

    assert response.status_code == 500
    assert "Failed to fetch the post!" in response.json()["detail"]


def test_oembed(client: TestClient) -> None:
    response = client.get(
        "/oembed",
        params={"url": "https://bsky.app/profile/alice.test/post/images", "author": "alice.test"},
    )

    assert response.json()["author_name"] == "@alice.test"
    assert response.json()["provider_url"] == "https://skyfix.example"


def test_bsky_app_prefixed_routes(client: TestClient) -> None:
    redirect = client.get("/https://bsky.app/profile/alice.test/post/images/1", params={"direct": "true"})
    page = client.get("/https://bsky.app/profile/alice.test/post/images")
    data = client.get("/https://bsky.app/profile/alice.test/post/images/json")

    assert redirect.status_code == 302
    assert redirect.headers["location"] == "https://cdn/p/did/b@jpeg"
    assert page.status_code == 200
    assert data.json()["uri"] == _POSTS["images"]["uri"]


def test_profile_page_uses_avatar_and_bio(client: TestClient) -> None:
    response = client.get("/profile/alice.test")

    assert response.status_code == 200
    assert '<meta property="og:image" content="https://cdn/avatar.jpg">' in response.text
    assert '<meta property="og:description" content="Painter &amp; cat person">' in response.text
    assert '<meta property="og:title" content="Alice (@alice.test)">' in response.text
    assert '<meta http-equiv="refresh" content="0;url=https://bsky.app/profile/alice.test">' in response.text


def test_profile_routes_under_bsky_app_prefix(client: TestClient) -> None:
    page = client.get("/https://bsky.app/profile/alice.test")
    data = client.get("/https://bsky.app/profile/alice.test/json")

    assert page.status_code == 200
    assert data.json() == _PROFILE


def test_profile_json_returns_raw_view(client: TestClient) -> None:
    assert client.get("/profile/alice.test/json").json()["followersCount"] == 12


def test_missing_profile_is_404(client: TestClient) -> None:
    assert client.get("/profile/nobody.test").status_code == 404
    assert client.get("/profile/nobody.test/json").status_code == 404


def test_unservable_selection_result_raises(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    composite = GalleryComposite(segments=["did", "a"], url="https://api.example/images/png/did/a")
    monkeypatch.setattr(api, "resolve_post", lambda post, flags, config: composite)

    with pytest.raises(TypeError, match="Cannot serve selection result"):
        client.get("/profile/alice.test/post/images")
