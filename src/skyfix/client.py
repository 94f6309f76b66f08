"""XRPC client that fetches posts and profiles, with a persisted login session."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from skyfix.config import ServiceConfig
from skyfix.models import Post, Profile

logger = logging.getLogger(__name__)

_USER_AGENT = "skyfix (+https://github.com/skyfix/skyfix)"


class BlueskyClientError(RuntimeError):
    """Base error for failed upstream calls."""


class AuthenticationError(BlueskyClientError):
    """Raised when logging in or refreshing the session fails."""


class PostFetchError(BlueskyClientError):
    """Raised when a post cannot be fetched."""


class PostNotFoundError(PostFetchError):
    """Raised when the upstream answers but returns no post."""


class ProfileFetchError(BlueskyClientError):
    """Raised when a profile cannot be fetched."""


class ProfileNotFoundError(ProfileFetchError):
    pass


class Session(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    did: str
    handle: str
    access_jwt: str = Field(alias="accessJwt")
    refresh_jwt: str = Field(alias="refreshJwt")


class SessionStore(Protocol):
    def load(self) -> Session | None: ...

    def save(self, session: Session) -> None: ...

    def clear(self) -> None: ...


class FileSessionStore:
    """Keeps the session as JSON on disk so restarts do not log in again."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Session | None:
        if not self.path.is_file():
            return None
        try:
            return Session.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(session.model_dump_json(by_alias=True), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class MemorySessionStore:
    def __init__(self, session: Session | None = None) -> None:
        self.session = session

    def load(self) -> Session | None:
        return self.session

    def save(self, session: Session) -> None:
        self.session = session

    def clear(self) -> None:
        self.session = None


def post_uri(did: str, rkey: str) -> str:
    return f"at://{did}/app.bsky.feed.post/{rkey}"


def _error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("error") if isinstance(body, dict) else None


def _is_expired(response: httpx.Response) -> bool:
    return response.status_code in {400, 401} and _error_code(response) == "ExpiredToken"


def _session_from(response: httpx.Response, action: str) -> Session:
    try:
        return Session.model_validate(response.json())
    except ValueError as exc:
        raise AuthenticationError(f"Unexpected {action} response: {exc}") from exc


def _describe(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"status {response.status_code}"
    return f"status {response.status_code}: {body.get('error', '')} {body.get('message', '')}".strip()


class BlueskyClient:
    """Fetches posts from the configured service.

    Without credentials requests go out unauthenticated, which works against
    public AppView hosts. With credentials a stored session is resumed, or a
    new one created, and refreshed once when the upstream reports it expired.
    """

    def __init__(
        self,
        config: ServiceConfig,
        store: SessionStore | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._store = store if store is not None else FileSessionStore(config.session_path)
        self._session: Session | None = None
        self._http = httpx.Client(
            base_url=config.service_url,
            timeout=config.timeout_seconds,
            headers={"User-Agent": _USER_AGENT, "Accept": "application/json"},
            transport=transport,
        )

    def __enter__(self) -> "BlueskyClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def session(self) -> Session | None:
        return self._session

    def login(self) -> Session:
        """Create a new session from the configured credentials and store it."""

        if not self._config.has_credentials:
            raise AuthenticationError("No Bluesky credentials configured")

        try:
            response = self._http.post(
                "xrpc/com.atproto.server.createSession",
                json={"identifier": self._config.username, "password": self._config.password},
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Failed to login to Bluesky: {exc}") from exc
        if response.is_error:
            raise AuthenticationError(f"Failed to login to Bluesky: {_describe(response)}")

        session = _session_from(response, "login")
        self._store.save(session)
        self._session = session
        logger.info("Logged in to %s as %s", self._config.service_url, session.handle)
        return session

    def ensure_session(self) -> Session | None:
        if self._session is not None:
            return self._session
        if not self._config.has_credentials:
            return None

        stored = self._store.load()
        if stored is not None:
            logger.debug("Resuming stored session for %s", stored.handle)
            self._session = stored
            return stored
        return self.login()

    def _refresh(self, session: Session) -> Session:
        try:
            response = self._http.post(
                "xrpc/com.atproto.server.refreshSession",
                headers={"Authorization": f"Bearer {session.refresh_jwt}"},
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Failed to refresh the session: {exc}") from exc

        if response.is_error:
            logger.warning("Session refresh failed (%s), logging in again", _describe(response))
            self._store.clear()
            self._session = None
            return self.login()

        refreshed = _session_from(response, "refresh")
        self._store.save(refreshed)
        self._session = refreshed
        logger.info("Refreshed session for %s", refreshed.handle)
        return refreshed

    def _send(self, method: str, params: dict[str, Any]) -> httpx.Response:
        session = self.ensure_session()
        response = self._http.get(f"xrpc/{method}", params=params, headers=self._auth_headers(session))
        if session is not None and _is_expired(response):
            session = self._refresh(session)
            response = self._http.get(f"xrpc/{method}", params=params, headers=self._auth_headers(session))
        return response

    def _get(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._send(method, params)
        except httpx.HTTPError as exc:
            raise PostFetchError(f"{method} failed: {exc}") from exc

        if response.is_error:
            raise PostFetchError(f"{method} failed with {_describe(response)}")
        return response.json()

    @staticmethod
    def _auth_headers(session: Session | None) -> dict[str, str]:
        if session is None:
            return {}
        return {"Authorization": f"Bearer {session.access_jwt}"}

    def resolve_handle(self, user: str) -> str:
        """Return the DID for a handle; DIDs pass through unchanged."""

        if user.startswith("did:"):
            return user
        data = self._get("com.atproto.identity.resolveHandle", {"handle": user})
        did = data.get("did")
        if not isinstance(did, str):
            raise PostFetchError(f"Could not resolve handle '{user}'")
        return did

    def get_post_data(self, user: str, rkey: str) -> dict[str, Any]:
        """Return the raw post view JSON for one post."""

        did = self.resolve_handle(user)
        data = self._get("app.bsky.feed.getPosts", {"uris": post_uri(did, rkey)})
        posts = data.get("posts") or []
        if not posts:
            raise PostNotFoundError(f"Post {rkey} by {user} was not found")
        return posts[0]

    def get_post(self, user: str, rkey: str) -> Post:
        raw = self.get_post_data(user, rkey)
        try:
            return Post.model_validate(raw)
        except ValidationError as exc:
            raise PostFetchError(f"Unexpected post shape for {rkey}: {exc}") from exc

    def get_profile_data(self, user: str) -> dict[str, Any]:
        """Return the raw `app.bsky.actor.getProfile` view; handles and DIDs both work."""

        method = "app.bsky.actor.getProfile"
        try:
            response = self._send(method, {"actor": user})
        except httpx.HTTPError as exc:
            raise ProfileFetchError(f"{method} failed: {exc}") from exc

        # The AppView answers an unknown actor with 400 InvalidRequest.
        if response.status_code == 400 and _error_code(response) == "InvalidRequest":
            raise ProfileNotFoundError(f"Profile {user} was not found")
        if response.is_error:
            raise ProfileFetchError(f"{method} failed with {_describe(response)}")
        return response.json()

    def get_profile(self, user: str) -> Profile:
        raw = self.get_profile_data(user)
        try:
            return Profile.model_validate(raw)
        except ValidationError as exc:
            raise ProfileFetchError(f"Unexpected profile shape for {user}: {exc}") from exc
