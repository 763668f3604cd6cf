"""Kick public API client.

``GET /public/v1/channels`` takes up to 50 ``slug`` filters and returns one
channel object per slug it could resolve, live or not. A slug that is missing
from the response was not resolved, which is Unknown rather than NotLive.

Kick does not expose a broadcast id on this endpoint; the broadcaster id plus
the stream start time identifies one broadcast.
"""
from __future__ import annotations

from watchtime.core.errors import MalformedPayloadError
from watchtime.services.platforms.base import (
    NOT_LIVE,
    HttpPlatformClient,
    Live,
    Unknown,
    Verdict,
    parse_timestamp,
    read_viewer_count,
)

KICK_API_BASE = "https://api.kick.com/public/v1"
KICK_OAUTH_BASE = "https://id.kick.com/oauth"


class KickClient(HttpPlatformClient):
    platform = "kick"
    max_batch_size = 50
    token_url = f"{KICK_OAUTH_BASE}/token"

    def check_live(self, identifiers: list[str]) -> dict[str, Verdict]:
        if not identifiers:
            return {}
        data = self._get(f"{KICK_API_BASE}/channels", [("slug", s) for s in identifiers])

        channels = data.get("data")
        if not isinstance(channels, list):
            raise MalformedPayloadError(self.platform, "channels response has no data list")

        # Slugs are case-insensitive on Kick; answer with the caller's spelling.
        by_slug = {s.lower(): s for s in identifiers}
        verdicts: dict[str, Verdict] = {}

        for channel in channels:
            if not isinstance(channel, dict):
                continue
            slug = channel.get("slug")
            if not isinstance(slug, str) or slug.lower() not in by_slug:
                continue
            verdicts[by_slug[slug.lower()]] = self._parse_channel(channel)

        for identifier in identifiers:
            verdicts.setdefault(identifier, Unknown("slug not resolved"))
        return verdicts

    def _parse_channel(self, channel: dict) -> Verdict:
        stream = channel.get("stream")
        if not isinstance(stream, dict):
            return Unknown("channel entry without stream object")
        if not stream.get("is_live"):
            return NOT_LIVE

        broadcaster_id = channel.get("broadcaster_user_id")
        start_time = stream.get("start_time")
        if broadcaster_id is None or not start_time:
            return Unknown("live channel without broadcaster id or start time")

        category = channel.get("category")
        return Live(
            external_stream_id=f"kick-{broadcaster_id}-{start_time}",
            viewer_count=read_viewer_count(stream.get("viewer_count")),
            title=channel.get("stream_title") or None,
            category=category.get("name") if isinstance(category, dict) else None,
            started_at=parse_timestamp(start_time),
        )
