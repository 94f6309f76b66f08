"""Video detection for posts and stream URL construction."""

from __future__ import annotations

from skyfix.config import ServiceConfig
from skyfix.embeds import EmbedView, RecordWithMediaView, VideoView
from skyfix.models import Post, VideoInfo


def _video_embed(embed: EmbedView | None) -> VideoView | None:
    if isinstance(embed, VideoView):
        return embed
    if isinstance(embed, RecordWithMediaView) and isinstance(embed.media, VideoView):
        return embed.media
    return None


def video_url(did: str, cid: str, config: ServiceConfig, *, prefer_proxy: bool = False) -> str:
    """Proxy stream URL when requested, otherwise the raw blob URL on the PDS."""

    if prefer_proxy:
        return f"{config.api_url}video/720p/{did}/{cid}"
    return f"{config.pds_url}xrpc/com.atproto.sync.getBlob?cid={cid}&did={did}"


def detect_video(post: Post, config: ServiceConfig, prefer_proxy: bool = False) -> VideoInfo | None:
    """Return video metadata when the post, or its media side, is a video."""

    video = _video_embed(post.embed)
    if video is None:
        return None

    return VideoInfo(
        cid=video.cid,
        url=video_url(post.author.did, video.cid, config, prefer_proxy=prefer_proxy),
        aspect_ratio=video.aspect_ratio,
        thumbnail=video.thumbnail,
        playlist=video.playlist,
    )
