"""Typed views over the polymorphic Bluesky embed payload."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

POST = "app.bsky.feed.post"
IMAGES_VIEW = "app.bsky.embed.images#view"
EXTERNAL_VIEW = "app.bsky.embed.external#view"
RECORD_VIEW = "app.bsky.embed.record#view"
VIEW_RECORD = "app.bsky.embed.record#viewRecord"
RECORD_WITH_MEDIA_VIEW = "app.bsky.embed.recordWithMedia#view"
VIDEO = "app.bsky.embed.video"
VIDEO_VIEW = "app.bsky.embed.video#view"


class LexiconModel(BaseModel):
    """Base for upstream values tagged with a `$type` discriminator."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    py_type: str = Field(default="", alias="$type")


def embed_type(value: Any) -> str | None:
    """Return the `$type` tag carried by a raw mapping or parsed model."""

    if isinstance(value, LexiconModel):
        return value.py_type
    if isinstance(value, Mapping):
        tag = value.get("$type")
        return tag if isinstance(tag, str) else None
    return None


def has_type(value: Any, tag: str) -> bool:
    """True iff value carries `tag` under its discriminator; never raises."""

    return embed_type(value) == tag


class AspectRatio(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int
    height: int


class Author(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    did: str
    handle: str
    display_name: str | None = Field(default=None, alias="displayName")
    avatar: str | None = None


class PostRecord(LexiconModel):
    """The `value` of a feed post: its text and creation time."""

    text: str = ""
    created_at: str | None = Field(default=None, alias="createdAt")


class ImageView(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    fullsize: str
    thumb: str | None = None
    alt: str = ""
    aspect_ratio: AspectRatio | None = Field(default=None, alias="aspectRatio")


class ImagesView(LexiconModel):
    tags: ClassVar[tuple[str, ...]] = (IMAGES_VIEW,)

    py_type: str = Field(default=IMAGES_VIEW, alias="$type")
    images: list[ImageView] = Field(default_factory=list)


class ExternalLink(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    uri: str
    title: str = ""
    description: str = ""
    thumb: str | None = None


class ExternalView(LexiconModel):
    tags: ClassVar[tuple[str, ...]] = (EXTERNAL_VIEW,)

    py_type: str = Field(default=EXTERNAL_VIEW, alias="$type")
    external: ExternalLink


class VideoView(LexiconModel):
    tags: ClassVar[tuple[str, ...]] = (VIDEO, VIDEO_VIEW)

    py_type: str = Field(default=VIDEO_VIEW, alias="$type")
    cid: str
    playlist: str | None = None
    thumbnail: str | None = None
    aspect_ratio: AspectRatio | None = Field(default=None, alias="aspectRatio")


class ViewRecord(LexiconModel):
    """A quoted post as returned inside a record embed view."""

    tags: ClassVar[tuple[str, ...]] = (VIEW_RECORD,)

    py_type: str = Field(default=VIEW_RECORD, alias="$type")
    uri: str = ""
    cid: str = ""
    author: Author | None = None
    value: PostRecord = Field(default_factory=PostRecord)
    embeds: list[EmbedView] = Field(default_factory=list)

    @field_validator("embeds", mode="before")
    @classmethod
    def parse_embeds(cls, value: Any) -> list[EmbedView]:
        if not isinstance(value, list):
            return []
        parsed = (parse_embed(item) for item in value)
        return [item for item in parsed if item is not None]


class RecordView(LexiconModel):
    tags: ClassVar[tuple[str, ...]] = (RECORD_VIEW,)

    py_type: str = Field(default=RECORD_VIEW, alias="$type")
    record: EmbedView | None = None

    @field_validator("record", mode="before")
    @classmethod
    def parse_record(cls, value: Any) -> EmbedView | None:
        return parse_embed(value)


class RecordWithMediaView(LexiconModel):
    tags: ClassVar[tuple[str, ...]] = (RECORD_WITH_MEDIA_VIEW,)

    py_type: str = Field(default=RECORD_WITH_MEDIA_VIEW, alias="$type")
    record: EmbedView | None = None
    media: EmbedView | None = None

    @field_validator("record", "media", mode="before")
    @classmethod
    def parse_side(cls, value: Any) -> EmbedView | None:
        return parse_embed(value)


class UnknownEmbed(LexiconModel):
    """Placeholder for payloads with an unknown tag or an invalid shape."""


EmbedView = Union[
    ImagesView,
    ExternalView,
    VideoView,
    ViewRecord,
    RecordView,
    RecordWithMediaView,
    UnknownEmbed,
]

_EMBED_CLASSES = (
    ImagesView,
    ExternalView,
    VideoView,
    ViewRecord,
    RecordView,
    RecordWithMediaView,
    UnknownEmbed,
)

_EMBED_MODELS: dict[str, type[LexiconModel]] = {
    tag: model
    for model in (ImagesView, ExternalView, VideoView, ViewRecord, RecordView, RecordWithMediaView)
    for tag in model.tags
}

for _model in (ViewRecord, RecordView, RecordWithMediaView):
    _model.model_rebuild()


def parse_embed(value: Any) -> EmbedView | None:
    """Turn a raw embed payload into its typed view.

    Unknown tags and payloads that fail validation become `UnknownEmbed`,
    so callers fall through to their fallback branches instead of failing.
    """

    if value is None:
        return None
    if isinstance(value, _EMBED_CLASSES):
        return value
    if not isinstance(value, Mapping):
        logger.debug("Ignoring embed payload of type %s", type(value).__name__)
        return UnknownEmbed()

    tag = embed_type(value) or ""
    model = _EMBED_MODELS.get(tag)
    if model is None:
        logger.debug("Unknown embed type %r", tag)
        return UnknownEmbed(py_type=tag)

    try:
        return model.model_validate(value)
    except ValidationError as exc:
        logger.debug("Malformed %s embed: %s", tag, exc)
        return UnknownEmbed(py_type=tag)
