"""Resolve one fetched post into the response to serve."""

from __future__ import annotations

import logging

from skyfix.config import RequestFlags, ServiceConfig
from skyfix.media import extract_media
from skyfix.models import Post, SelectionResult
from skyfix.quote import extract_quote_text
from skyfix.selection import select
from skyfix.video import detect_video

logger = logging.getLogger(__name__)


def resolve_post(post: Post, flags: RequestFlags, config: ServiceConfig) -> SelectionResult:
    media = extract_media(post)
    video = detect_video(post, config, prefer_proxy=flags.video_api)
    text = extract_quote_text(post)

    logger.debug(
        "Resolved %s: media=%s video=%s flags=%s",
        post.uri,
        media.kind.value,
        video is not None,
        flags.model_dump(),
    )
    return select(media, video, flags, config=config, text=text)
