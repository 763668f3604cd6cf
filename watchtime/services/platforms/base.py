"""
Platform client contract and the verdict types it produces.

A platform client answers one question per creator, for a batch of
creators at a time: is this creator live right now, and if so, with what
broadcast metadata?

Verdict
-------
  NotLive              : the platform explicitly says the creator is offline.
  Unknown(reason)      : we could not tell (error, timeout, malformed data).
  Live(...)            : live, with the broadcast's id, viewers, title, ...

Unknown is deliberately distinct from NotLive: only NotLive may end a session.

Viewer counts are tagged: Ok(n) is a value the platform reported, Failed(reason)
marks a count that could not be read. A bare integer is never used, so a
fallback 0 from an error path can't pass for a real zero.
"""
from __future__ import annotations

import abc
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union

import httpx

from watchtime.core.errors import MalformedPayloadError, PlatformRequestError


# ---------------------------------------------------------------------------
# Tagged viewer count
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Ok:
    value: int


@dataclass(frozen=True)
class Failed:
    reason: str


ViewerCount = Union[Ok, Failed]


def read_viewer_count(raw) -> ViewerCount:
    """Tag a raw JSON viewer count. Anything but a non-negative int is Failed."""
    if raw is None:
        return Failed("viewer_count missing")
    if isinstance(raw, bool) or not isinstance(raw, int):
        return Failed(f"viewer_count not an integer: {raw!r}")
    if raw < 0:
        return Failed(f"viewer_count negative: {raw}")
    return Ok(raw)


# ---------------------------------------------------------------------------
# Verdicts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NotLive:
    kind = "not_live"


@dataclass(frozen=True)
class Unknown:
    reason: str
    kind = "unknown"


@dataclass(frozen=True)
class Live:
    external_stream_id: str
    viewer_count: ViewerCount
    title: Optional[str] = None
    category: Optional[str] = None
    started_at: Optional[datetime] = None
    kind = "live"


Verdict = Union[NotLive, Unknown, Live]

NOT_LIVE = NotLive()


def parse_timestamp(raw) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from a platform payload, or None."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Token cache
# ---------------------------------------------------------------------------

class TokenCache:
    """
    App access token holder owned by one platform client.

    ``fetch`` performs the client-credentials exchange and returns
    ``(token, expires_in_seconds)``. Tokens are refreshed ``refresh_margin``
    seconds before they expire; a 401 from the API should call
    ``invalidate()`` so the next request fetches a fresh one.
    Thread-safe: poll batches share the client across worker threads.
    """

    def __init__(
        self,
        fetch: Callable[[], tuple[str, float]],
        refresh_margin: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._refresh_margin = refresh_margin
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: float = 0.0
        self._lock = threading.Lock()

    def get_token(self) -> str:
        if self._token and self._clock() < self._expires_at:
            return self._token
        with self._lock:
            # Another worker may have refreshed while we waited.
            now = self._clock()
            if self._token and now < self._expires_at:
                return self._token
            token, expires_in = self._fetch()
            self._token = token
            self._expires_at = now + max(expires_in - self._refresh_margin, 0.0)
            return token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0


# ---------------------------------------------------------------------------
# Client base
# ---------------------------------------------------------------------------

class PlatformClient(abc.ABC):
    """Base class for concrete platform clients.

    Subclasses set ``platform`` and ``max_batch_size`` and implement
    ``check_live``. Whole-batch failures raise ``PlatformRequestError``
    (transient, retried by the poller) or ``MalformedPayloadError``; per-creator
    problems are reported as ``Unknown`` verdicts in the returned mapping.
    """

    platform: str = ""
    max_batch_size: int = 100

    @abc.abstractmethod
    def check_live(self, identifiers: list[str]) -> dict[str, Verdict]:
        """Return a verdict per identifier; identifiers may be left out."""

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class HttpPlatformClient(PlatformClient):
    """Shared plumbing for HTTP/JSON platform APIs with app access tokens."""

    token_url: str = ""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
        http: Optional[httpx.Client] = None,
    ):
        if not client_id or not client_secret:
            raise ValueError(f"{self.platform} client_id and client_secret are required")
        self.client_id = client_id
        self.client_secret = client_secret
        self._own_http = http is None
        self._http = http or httpx.Client(timeout=timeout)
        self.tokens = TokenCache(self._fetch_token)

    def close(self) -> None:
        if self._own_http:
            self._http.close()

    def _fetch_token(self) -> tuple[str, float]:
        try:
            response = self._http.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.HTTPError as exc:
            raise PlatformRequestError(self.platform, f"token request failed: {exc}") from exc
        if response.status_code != 200:
            raise PlatformRequestError(
                self.platform,
                "token request rejected",
                status_code=response.status_code,
            )
        data = self._json(response)
        token = data.get("access_token")
        if not token:
            raise MalformedPayloadError(self.platform, "token response has no access_token")
        return token, float(data.get("expires_in") or 3600)

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def _get(self, url: str, params: list[tuple[str, str]]) -> dict:
        """GET with the app token; one transparent re-auth on 401."""
        for attempt in range(2):
            token = self.tokens.get_token()
            try:
                response = self._http.get(url, params=params, headers=self._headers(token))
            except httpx.HTTPError as exc:
                raise PlatformRequestError(self.platform, f"request failed: {exc}") from exc
            if response.status_code == 401 and attempt == 0:
                self.tokens.invalidate()
                continue
            if response.status_code != 200:
                raise PlatformRequestError(
                    self.platform,
                    f"GET {url} returned {response.status_code}",
                    status_code=response.status_code,
                )
            return self._json(response)
        raise PlatformRequestError(self.platform, "unauthorized after token refresh", status_code=401)

    def _json(self, response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedPayloadError(self.platform, "response body is not JSON") from exc
        if not isinstance(data, dict):
            raise MalformedPayloadError(self.platform, "response body is not a JSON object")
        return data
