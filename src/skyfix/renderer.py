"""HTML rendering of the post and profile embed pages and the oEmbed document."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from importlib.resources import files
from typing import Any
from urllib.parse import urlencode

from dateutil.parser import isoparse
from jinja2 import Environment, Template

from skyfix.config import ServiceConfig
from skyfix.embeds import Author
from skyfix.models import FullPage, GalleryComposite, MediaKind, Post, PostRef, Profile

_PROVIDER_NAME = "skyfix"


@dataclass(frozen=True)
class MetaImage:
    """One `og:image` entry."""

    url: str
    alt: str = ""
    width: int | None = None
    height: int | None = None


def _to_datetime(raw_timestamp: str | None) -> datetime | None:
    if not raw_timestamp:
        return None
    try:
        return isoparse(raw_timestamp)
    except ValueError:
        return None


def display_title(author: Author | Profile) -> str:
    if author.display_name:
        return f"{author.display_name} (@{author.handle})"
    return f"@{author.handle}"


def engagement_line(post: Post) -> str:
    return f"💬 {post.reply_count}   🔁 {post.repost_count}   ❤️ {post.like_count}   📝 {post.quote_count}"


def _page_images(page: FullPage) -> list[MetaImage]:
    media = page.media
    if isinstance(media, GalleryComposite):
        return [MetaImage(url=media.url)]
    if media.kind == MediaKind.IMAGES:
        return [
            MetaImage(
                url=image.fullsize,
                alt=image.alt,
                width=image.aspect_ratio.width if image.aspect_ratio else None,
                height=image.aspect_ratio.height if image.aspect_ratio else None,
            )
            for image in media.images
        ]
    if media.kind == MediaKind.FALLBACK and media.url:
        return [MetaImage(url=media.url)]
    return []


def _external_url(page: FullPage) -> str | None:
    if isinstance(page.media, GalleryComposite) or page.media.kind != MediaKind.EXTERNAL:
        return None
    return page.media.url


def _card_type(page: FullPage, images: list[MetaImage]) -> str:
    if page.video is not None:
        return "player"
    if isinstance(page.media, GalleryComposite) or (
        page.media.kind == MediaKind.IMAGES and images
    ):
        return "summary_large_image"
    return "summary"


def oembed_url(post: Post, config: ServiceConfig) -> str:
    query = urlencode(
        {
            "url": PostRef(user=post.author.handle, rkey=post.rkey).canonical_url,
            "author": post.author.handle,
            "name": post.author.display_name or "",
        }
    )
    return f"https://{config.app_domain}/oembed?{query}"


def _template(name: str) -> Template:
    template_source = files("skyfix.templates").joinpath(name).read_text(encoding="utf-8")
    environment = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
    return environment.from_string(template_source)


def render_post_page(post: Post, page: FullPage, config: ServiceConfig, *, path: str = "") -> str:
    """Render the meta-tag page that link previews read."""

    images = _page_images(page)
    published = _to_datetime(post.indexed_at)
    canonical_url = PostRef(user=post.author.handle, rkey=post.rkey).canonical_url

    return _template("post.html.j2").render(
        title=display_title(post.author),
        description=page.text,
        site_name=engagement_line(post),
        canonical_url=canonical_url,
        self_url=f"https://{config.app_domain}{path}" if path else canonical_url,
        card_type=_card_type(page, images),
        images=images,
        video=page.video,
        external_url=_external_url(page),
        published=published.isoformat() if published else None,
        oembed_url=oembed_url(post, config),
    )


def profile_stats_line(profile: Profile) -> str:
    return (
        f"👥 {profile.followers_count} Followers   "
        f"👤 {profile.follows_count} Following   "
        f"📝 {profile.posts_count} Posts"
    )


def render_profile_page(profile: Profile, config: ServiceConfig, *, path: str = "") -> str:
    """Render the profile meta page: avatar as the image, bio as the description."""

    canonical_url = profile.canonical_url
    return _template("profile.html.j2").render(
        title=display_title(profile),
        description=profile.description,
        site_name=profile_stats_line(profile),
        handle=profile.handle,
        canonical_url=canonical_url,
        self_url=f"https://{config.app_domain}{path}" if path else canonical_url,
        avatar=profile.avatar,
    )


def build_oembed(url: str, author: str, name: str, config: ServiceConfig) -> dict[str, Any]:
    """oEmbed `link` document naming the post author and this service."""

    author_name = f"{name} (@{author})" if name else f"@{author}"
    return {
        "version": "1.0",
        "type": "link",
        "author_name": author_name,
        "author_url": url,
        "provider_name": _PROVIDER_NAME,
        "provider_url": f"https://{config.app_domain}",
    }
