"""skyfix HTTP service: link-preview pages and direct media redirects.

Usage:
    uvicorn skyfix.api:app --port 3000
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse

from skyfix.client import (
    AuthenticationError,
    BlueskyClient,
    PostFetchError,
    PostNotFoundError,
    ProfileFetchError,
    ProfileNotFoundError,
)
from skyfix.config import RequestFlags, ServiceConfig
from skyfix.input import post_ref_from_path
from skyfix.models import FullPage, PostRef, Redirect
from skyfix.renderer import build_oembed, render_post_page, render_profile_page
from skyfix.resolver import resolve_post
from skyfix.selection import ImageIndexError

logger = logging.getLogger(__name__)

PROJECT_URL = "https://github.com/skyfix/skyfix"

try:
    __version__ = version("skyfix")
except PackageNotFoundError:
    __version__ = "0.0.0"

app = FastAPI(title="skyfix", version=__version__)


@lru_cache(maxsize=1)
def get_config() -> ServiceConfig:
    return ServiceConfig.from_env()


def get_client(config: ServiceConfig = Depends(get_config)) -> Iterator[BlueskyClient]:
    with BlueskyClient(config) as client:
        yield client


def _path_ref(user: str, post: str, index: str | None = None) -> PostRef:
    try:
        return post_ref_from_path(user, post, index)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@contextmanager
def _upstream_errors() -> Iterator[None]:
    try:
        yield
    except (PostNotFoundError, ProfileNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AuthenticationError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to login to Bluesky!\n{exc}") from exc
    except PostFetchError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to fetch the post!\n{exc}") from exc
    except ProfileFetchError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to fetch the profile!\n{exc}") from exc


def _serve_post(
    request: Request,
    ref: PostRef,
    client: BlueskyClient,
    config: ServiceConfig,
) -> Response:
    with _upstream_errors():
        post = client.get_post(ref.user, ref.rkey)
    flags = RequestFlags.from_query(request.query_params, index=ref.index)

    try:
        result = resolve_post(post, flags, config)
    except ImageIndexError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if isinstance(result, Redirect):
        logger.info("Redirecting %s to %s", post.uri, result.url)
        return RedirectResponse(result.url, status_code=302)
    if isinstance(result, FullPage):
        return HTMLResponse(render_post_page(post, result, config, path=request.url.path))
    raise TypeError(f"Cannot serve selection result {result!r}")


@app.get("/")
def index() -> RedirectResponse:
    return RedirectResponse(PROJECT_URL, status_code=302)


@app.get("/json")
def project_info() -> dict[str, str]:
    return {"name": "skyfix", "version": __version__, "repoUrl": PROJECT_URL}


@app.get("/oembed")
def oembed(url: str, author: str, name: str = "", config: ServiceConfig = Depends(get_config)) -> dict[str, Any]:
    return build_oembed(url, author, name, config)


@app.get("/profile/{user}/post/{post}/json")
@app.get("/https://bsky.app/profile/{user}/post/{post}/json")
def post_data(user: str, post: str, client: BlueskyClient = Depends(get_client)) -> dict[str, Any]:
    ref = _path_ref(user, post)
    with _upstream_errors():
        return client.get_post_data(ref.user, ref.rkey)


@app.get("/profile/{user}/post/{post}")
@app.get("/https://bsky.app/profile/{user}/post/{post}")
def post_page(
    request: Request,
    user: str,
    post: str,
    client: BlueskyClient = Depends(get_client),
    config: ServiceConfig = Depends(get_config),
) -> Response:
    return _serve_post(request, _path_ref(user, post), client, config)


@app.get("/profile/{user}/post/{post}/{index}")
@app.get("/https://bsky.app/profile/{user}/post/{post}/{index}")
def post_page_at_index(
    request: Request,
    user: str,
    post: str,
    index: str,
    client: BlueskyClient = Depends(get_client),
    config: ServiceConfig = Depends(get_config),
) -> Response:
    return _serve_post(request, _path_ref(user, post, index), client, config)


@app.get("/profile/{user}/json")
@app.get("/https://bsky.app/profile/{user}/json")
def profile_data(user: str, client: BlueskyClient = Depends(get_client)) -> dict[str, Any]:
    with _upstream_errors():
        return client.get_profile_data(user)


@app.get("/profile/{user}")
@app.get("/https://bsky.app/profile/{user}")
def profile_page(
    request: Request,
    user: str,
    client: BlueskyClient = Depends(get_client),
    config: ServiceConfig = Depends(get_config),
) -> Response:
    with _upstream_errors():
        profile = client.get_profile(user)
    return HTMLResponse(render_profile_page(profile, config, path=request.url.path))
