"""Domain models used by skyfix."""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from skyfix.embeds import AspectRatio, Author, EmbedView, ImageView, PostRecord, parse_embed


class PostRef(BaseModel):
    """A post addressed by author (handle or DID) and record key."""

    user: str
    rkey: str
    index: str | None = None

    @property
    def canonical_url(self) -> str:
        return f"https://bsky.app/profile/{self.user}/post/{self.rkey}"


class Post(BaseModel):
    """A post view as returned by `app.bsky.feed.getPosts`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    uri: str
    cid: str = ""
    author: Author
    record: PostRecord = Field(default_factory=PostRecord)
    embed: EmbedView | None = None
    reply_count: int = Field(default=0, alias="replyCount")
    repost_count: int = Field(default=0, alias="repostCount")
    like_count: int = Field(default=0, alias="likeCount")
    quote_count: int = Field(default=0, alias="quoteCount")
    indexed_at: str | None = Field(default=None, alias="indexedAt")

    @field_validator("embed", mode="before")
    @classmethod
    def parse_post_embed(cls, value: Any) -> EmbedView | None:
        return parse_embed(value)

    @property
    def rkey(self) -> str:
        return self.uri.rstrip("/").rsplit("/", 1)[-1]


class MediaKind(str, Enum):
    IMAGES = "images"
    EXTERNAL = "external"
    FALLBACK = "fallback"


class ResolvedMedia(BaseModel):
    """Media chosen for a post: images, one external link, or the avatar fallback."""

    model_config = ConfigDict(frozen=True)

    kind: MediaKind
    images: list[ImageView] = Field(default_factory=list)
    url: str = ""

    @model_validator(mode="after")
    def validate_kind_payload(self) -> "ResolvedMedia":
        if self.kind == MediaKind.IMAGES and not self.images:
            raise ValueError("image media requires at least one image")
        if self.kind != MediaKind.IMAGES and self.images:
            raise ValueError(f"{self.kind.value} media cannot carry images")
        return self

    @classmethod
    def of_images(cls, images: list[ImageView]) -> "ResolvedMedia":
        return cls(kind=MediaKind.IMAGES, images=images)

    @classmethod
    def external(cls, url: str) -> "ResolvedMedia":
        return cls(kind=MediaKind.EXTERNAL, url=url)

    @classmethod
    def fallback(cls, url: str) -> "ResolvedMedia":
        return cls(kind=MediaKind.FALLBACK, url=url)


class VideoInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    cid: str
    url: str
    aspect_ratio: AspectRatio | None = None
    thumbnail: str | None = None
    playlist: str | None = None


class GalleryComposite(BaseModel):
    """Path segments for the external gallery renderer, plus its full URL."""

    model_config = ConfigDict(frozen=True)

    segments: list[str]
    url: str

    @property
    def path(self) -> str:
        return "/".join(self.segments)


class Redirect(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str


class FullPage(BaseModel):
    """Everything the embed page needs: display text, media and optional video."""

    model_config = ConfigDict(frozen=True)

    text: str
    media: ResolvedMedia | GalleryComposite
    video: VideoInfo | None = None


SelectionResult = Union[Redirect, GalleryComposite, FullPage]


class Profile(BaseModel):
    """A detailed actor view as returned by `app.bsky.actor.getProfile`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    did: str
    handle: str
    display_name: str | None = Field(default=None, alias="displayName")
    description: str = ""
    avatar: str | None = None
    banner: str | None = None
    followers_count: int = Field(default=0, alias="followersCount")
    follows_count: int = Field(default=0, alias="followsCount")
    posts_count: int = Field(default=0, alias="postsCount")

    @property
    def canonical_url(self) -> str:
        return f"https://bsky.app/profile/{self.handle}"
