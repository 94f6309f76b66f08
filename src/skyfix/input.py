"""Post URL and route parameter parsing."""

from __future__ import annotations

from urllib.parse import urlparse

from skyfix.models import PostRef

_ALLOWED_HOSTS = {"bsky.app", "www.bsky.app"}


def normalize_rkey(post: str) -> str:
    """Drop `|` characters, which some clients append to the record key."""

    return post.replace("|", "")


def post_ref_from_path(user: str, post: str, index: str | None = None) -> PostRef:
    user = user.strip()
    rkey = normalize_rkey(post.strip())
    if not user or not rkey:
        raise ValueError("Both the profile and the post id are required")
    return PostRef(user=user, rkey=rkey, index=index)


def parse_post_url(url: str, extra_hosts: set[str] | None = None) -> PostRef:
    """Extract profile, record key and optional image index from a post URL."""

    hosts = _ALLOWED_HOSTS | (extra_hosts or set())
    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported URL scheme in '{url}'")
    if parsed.netloc.lower() not in hosts:
        raise ValueError(f"Unsupported host in '{url}'. Expected bsky.app")

    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) >= 4 and parts[0] == "profile" and parts[2] == "post":
        index = parts[4] if len(parts) > 4 else None
        return post_ref_from_path(parts[1], parts[3], index)

    raise ValueError(f"Could not find '/profile/<user>/post/<id>' in '{url}'")
