"""Media selection for a post and gallery path construction."""

from __future__ import annotations

from skyfix.config import ServiceConfig
from skyfix.embeds import ExternalView, ImagesView, ImageView, RecordView, RecordWithMediaView, ViewRecord
from skyfix.models import GalleryComposite, Post, ResolvedMedia

_JPEG_MARKER = "@jpeg"


def extract_media(post: Post) -> ResolvedMedia:
    """Collect the images a post shows, or the single link or avatar that stands in for them.

    Images from the quoted post, from a record-with-media composite and from
    the post itself are concatenated in that order. A link card inside a
    quoted post replaces every image. With no images at all the post's own
    link card wins, then the author avatar.
    """

    images: list[ImageView] = []
    embed = post.embed

    if isinstance(embed, RecordView) and isinstance(embed.record, ViewRecord) and embed.record.embeds:
        first = embed.record.embeds[0]
        if isinstance(first, ImagesView):
            images.extend(first.images)
        if isinstance(first, ExternalView):
            return ResolvedMedia.external(first.external.uri)

    if isinstance(embed, RecordWithMediaView) and isinstance(embed.media, ImagesView):
        images.extend(embed.media.images)

    if isinstance(embed, ImagesView):
        images.extend(embed.images)

    if not images:
        if isinstance(embed, ExternalView):
            return ResolvedMedia.external(embed.external.uri)
        return ResolvedMedia.fallback(post.author.avatar or "")

    return ResolvedMedia.of_images(images)


def gallery_segments(images: list[ImageView]) -> list[str]:
    """Last two path segments of the first image, last segment of the rest."""

    segments: list[str] = []
    for index, image in enumerate(images):
        parts = image.fullsize.split("/")
        tail = parts[-2:] if index == 0 else parts[-1:]
        segments.append("/".join(tail).replace(_JPEG_MARKER, ""))
    return segments


def build_gallery(images: list[ImageView], config: ServiceConfig) -> GalleryComposite:
    segments = gallery_segments(images)
    return GalleryComposite(segments=segments, url=f"{config.api_url}images/png/{'/'.join(segments)}")
