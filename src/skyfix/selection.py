"""Choose what to serve for a resolved post under the request's flags."""

from __future__ import annotations

from skyfix.config import RequestFlags, ServiceConfig
from skyfix.media import build_gallery
from skyfix.models import FullPage, MediaKind, Redirect, ResolvedMedia, SelectionResult, VideoInfo


class ImageIndexError(IndexError):
    """Raised when a direct link asks for an image the post does not have."""

    def __init__(self, index: int, count: int) -> None:
        super().__init__(f"Image index {index} is out of range for a post with {count} image(s)")
        self.index = index
        self.count = count


def select(
    media: ResolvedMedia,
    video: VideoInfo | None,
    flags: RequestFlags,
    *,
    config: ServiceConfig,
    text: str = "",
) -> SelectionResult:
    """Pick a redirect target or the full page payload.

    Direct requests always redirect: to the video when there is one, else to
    the image at `flags.index`, else to the link or avatar URL. Page requests
    get the text, the media (as a gallery composite when asked and there are
    images) and the video metadata.
    """

    if not flags.direct:
        if flags.gallery and media.kind == MediaKind.IMAGES:
            return FullPage(text=text, media=build_gallery(media.images, config), video=video)
        return FullPage(text=text, media=media, video=video)

    if video is not None:
        return Redirect(url=video.url)

    if media.kind == MediaKind.IMAGES:
        if not 0 <= flags.index < len(media.images):
            raise ImageIndexError(flags.index, len(media.images))
        return Redirect(url=media.images[flags.index].fullsize)

    return Redirect(url=media.url)
