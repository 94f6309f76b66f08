from typing import Any

import pytest

from skyfix.config import RequestFlags, ServiceConfig
from skyfix.models import FullPage, GalleryComposite, MediaKind, Post, Redirect
from skyfix.resolver import resolve_post
from skyfix.selection import ImageIndexError

_CONFIG = ServiceConfig(api_url="https://api.example/")
_CDN = "https://cdn.bsky.app/img/feed_fullsize/plain/did:plc:me"


def _quote_with_media(media: dict[str, Any]) -> dict[str, Any]:
    return {
        "$type": "app.bsky.embed.recordWithMedia#view",
        "record": {
            "$type": "app.bsky.embed.record#view",
            "record": {
                "$type": "app.bsky.embed.record#viewRecord",
                "uri": "at://did:plc:alice/app.bsky.feed.post/q1",
                "author": {"did": "did:plc:alice", "handle": "alice.test"},
                "value": {"$type": "app.bsky.feed.post", "text": "Line1\nLine2"},
            },
        },
        "media": media,
    }


def _post(embed: dict[str, Any]) -> Post:
    return Post.model_validate(
        {
            "uri": "at://did:plc:me/app.bsky.feed.post/p1",
            "cid": "bafypost",
            "author": {"did": "did:plc:me", "handle": "me.test", "avatar": "https://cdn/avatar.jpg"},
            "record": {"$type": "app.bsky.feed.post", "text": "Hello"},
            "embed": embed,
        }
    )


_IMAGES = {
    "$type": "app.bsky.embed.images#view",
    "images": [{"fullsize": f"{_CDN}/a@jpeg"}, {"fullsize": f"{_CDN}/b@jpeg"}],
}
_VIDEO = {"$type": "app.bsky.embed.video#view", "cid": "bafyvideo", "aspectRatio": {"width": 9, "height": 16}}


def test_page_for_quote_with_images() -> None:
    result = resolve_post(_post(_quote_with_media(_IMAGES)), RequestFlags(), _CONFIG)

    assert isinstance(result, FullPage)
    assert result.text == "Hello\n\nQuoting @alice.test\n➥  Line1\n  Line2"
    assert result.media.kind == MediaKind.IMAGES
    assert len(result.media.images) == 2
    assert result.video is None


def test_gallery_page_for_quote_with_images() -> None:
    result = resolve_post(_post(_quote_with_media(_IMAGES)), RequestFlags(gallery=True), _CONFIG)

    assert isinstance(result.media, GalleryComposite)
    assert result.media.url == "https://api.example/images/png/did:plc:me/a/b"


def test_direct_video_in_record_with_media_uses_proxy() -> None:
    flags = RequestFlags(direct=True, video_api=True)

    result = resolve_post(_post(_quote_with_media(_VIDEO)), flags, _CONFIG)

    assert result == Redirect(url="https://api.example/video/720p/did:plc:me/bafyvideo")


def test_direct_index_out_of_range() -> None:
    with pytest.raises(ImageIndexError):
        resolve_post(_post(_IMAGES), RequestFlags(direct=True, index="99"), _CONFIG)


def test_resolution_is_idempotent() -> None:
    post = _post(_quote_with_media(_IMAGES))
    flags = RequestFlags(gallery=True, index="1")

    first = resolve_post(post, flags, _CONFIG)
    second = resolve_post(post, flags, _CONFIG)

    assert first.model_dump_json() == second.model_dump_json()
