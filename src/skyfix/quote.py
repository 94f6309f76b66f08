"""Display text for posts, including the quoted post when there is one."""

from __future__ import annotations

import logging

from skyfix.embeds import POST, EmbedView, RecordView, RecordWithMediaView, ViewRecord, has_type
from skyfix.models import Post

logger = logging.getLogger(__name__)

_MISSING_HANDLE = "unknown"


def indent(text: str, width: int) -> str:
    """Prefix every line of text, the first included, with `width` spaces."""

    pad = " " * width
    return "\n".join(f"{pad}{line}" for line in text.split("\n"))


def is_quote(post: Post) -> bool:
    return has_type(post.record, POST) and isinstance(post.embed, (RecordView, RecordWithMediaView))


def _quoted_record(embed: RecordView | RecordWithMediaView) -> EmbedView | None:
    # recordWithMedia wraps a record view around the quoted post; plain
    # record views carry it directly.
    target = embed.record
    if isinstance(target, RecordView) and target.record is not None:
        return target.record
    return target


def extract_quote_text(post: Post) -> str:
    """Return the post text, followed by the quoted post when it quotes one."""

    if not is_quote(post):
        return post.record.text

    quoted = _quoted_record(post.embed)
    handle = _MISSING_HANDLE
    quoted_text = ""

    if isinstance(quoted, ViewRecord):
        if quoted.author is not None:
            handle = quoted.author.handle
        else:
            logger.debug("Quoted record %s has no author", quoted.uri)
        quoted_text = quoted.value.text
    else:
        logger.debug("Quote in %s resolved to %r, using placeholders", post.uri, quoted)

    return f"{post.record.text}\n\nQuoting @{handle}\n➥{indent(quoted_text, 2)}"
