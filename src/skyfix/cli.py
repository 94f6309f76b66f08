"""Typer CLI entrypoint for skyfix."""

from __future__ import annotations

import logging

import typer
from pydantic import ValidationError

from skyfix.client import BlueskyClient, BlueskyClientError
from skyfix.config import RequestFlags, ServiceConfig
from skyfix.input import parse_post_url
from skyfix.resolver import resolve_post
from skyfix.selection import ImageIndexError

app = typer.Typer(help="Resolve Bluesky posts into embeddable media.", no_args_is_help=True)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v")) -> None:
    """skyfix command group."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config() -> ServiceConfig:
    try:
        return ServiceConfig.from_env()
    except ValidationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc


@app.command()
def resolve(
    url: str = typer.Argument(..., help="https://bsky.app/profile/<user>/post/<id>[/<index>]"),
    direct: bool = typer.Option(False, help="Print the redirect target instead of page data."),
    gallery: bool = typer.Option(False, help="Combine all images into one gallery image."),
    video_api: bool = typer.Option(False, help="Serve videos through the media proxy."),
    index: int = typer.Option(0, min=0, help="Image to redirect to when the URL has no index."),
) -> None:
    """Fetch one post and print what skyfix would serve for it, as JSON."""

    try:
        ref = parse_post_url(url)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc

    config = _load_config()
    flags = RequestFlags(
        direct=direct,
        gallery=gallery,
        video_api=video_api,
        index=ref.index if ref.index is not None else index,
    )

    try:
        with BlueskyClient(config) as client:
            post = client.get_post(ref.user, ref.rkey)
        result = resolve_post(post, flags, config)
    except (BlueskyClientError, ImageIndexError) as exc:
        typer.echo(f"Resolve failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(result.model_dump_json(indent=2))


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(3000, min=1, max=65535),
    reload: bool = typer.Option(False),
) -> None:
    """Run the HTTP service."""

    import uvicorn

    config = _load_config()
    typer.echo(f"Serving {config.app_domain} previews on http://{host}:{port}")
    uvicorn.run("skyfix.api:app", host=host, port=port, reload=reload)
