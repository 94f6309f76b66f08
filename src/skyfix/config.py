"""Configuration models for skyfix."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

_ENV_FIELDS = {
    "BSKY_SERVICE_URL": "service_url",
    "BSKY_PDS_URL": "pds_url",
    "BSKY_AUTH_USERNAME": "username",
    "BSKY_AUTH_PASSWORD": "password",
    "SKYFIX_API_URL": "api_url",
    "SKYFIX_APP_DOMAIN": "app_domain",
    "SKYFIX_SESSION_PATH": "session_path",
    "SKYFIX_TIMEOUT_SECONDS": "timeout_seconds",
}


class ServiceConfig(BaseModel):
    """Upstream endpoints, credentials and public URLs used to build responses."""

    service_url: str = "https://bsky.social/"
    pds_url: str = "https://bsky.social/"
    api_url: str = "https://api.bskx.app/"
    app_domain: str = "bskx.app"
    username: str | None = None
    password: str | None = None
    session_path: Path = Path(".skyfix/session.json")
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)

    @field_validator("service_url", "pds_url", "api_url")
    @classmethod
    def normalize_base_url(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"Expected an http(s) base URL, got '{value}'")
        return value.strip() if value.strip().endswith("/") else f"{value.strip()}/"

    @field_validator("app_domain")
    @classmethod
    def validate_app_domain(cls, value: str) -> str:
        domain = value.strip().strip("/")
        if not domain or "/" in domain:
            raise ValueError(f"app_domain should be a bare host name, got '{value}'")
        return domain

    @model_validator(mode="after")
    def validate_credentials(self) -> "ServiceConfig":
        if self.password and not self.username:
            raise ValueError("password is set but username is missing")
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServiceConfig":
        """Build a config from environment variables, ignoring unset or empty ones."""

        source = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for env_name, field_name in _ENV_FIELDS.items():
            raw = source.get(env_name, "").strip()
            if raw:
                values[field_name] = raw
        return cls(**values)


def _coerce_index(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not number.is_integer():
        return 0
    return int(number)


class RequestFlags(BaseModel):
    """Per-request switches parsed from the query string and path."""

    direct: bool = False
    gallery: bool = False
    video_api: bool = False
    index: int = 0

    @field_validator("index", mode="before")
    @classmethod
    def coerce_index(cls, value: Any) -> int:
        return _coerce_index(value)

    @classmethod
    def from_query(cls, query: Mapping[str, str], index: str | None = None) -> "RequestFlags":
        """Flags are on only when their query value is exactly `true`."""

        return cls(
            direct=query.get("direct") == "true",
            gallery=query.get("gallery") == "true",
            video_api=query.get("video_api") == "true",
            index=index if index is not None else 0,
        )
