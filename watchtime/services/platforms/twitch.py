"""Twitch Helix client.

``GET /helix/streams`` takes up to 100 ``user_id`` filters and returns only
the streams that are currently live, so an identifier missing from the
response means NotLive, as long as every entry in the response could be
attributed to a user.
"""
from __future__ import annotations

import logging

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

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"


class TwitchClient(HttpPlatformClient):
    platform = "twitch"
    max_batch_size = 100
    token_url = f"{OAUTH_BASE}/token"

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    def check_live(self, identifiers: list[str]) -> dict[str, Verdict]:
        if not identifiers:
            return {}
        params = [("user_id", i) for i in identifiers]
        params.append(("first", str(self.max_batch_size)))
        data = self._get(f"{HELIX_BASE}/streams", params)

        streams = data.get("data")
        if not isinstance(streams, list):
            raise MalformedPayloadError(self.platform, "streams response has no data list")

        wanted = set(identifiers)
        verdicts: dict[str, Verdict] = {}
        unattributed = 0

        for stream in streams:
            user_id = stream.get("user_id") if isinstance(stream, dict) else None
            if not user_id:
                unattributed += 1
                continue
            user_id = str(user_id)
            if user_id not in wanted:
                continue
            verdicts[user_id] = self._parse_stream(stream)

        # A live entry we can't attribute could belong to any absent creator,
        # so absence no longer proves they are offline.
        absent = NOT_LIVE
        if unattributed:
            logger.warning(
                "twitch: %d stream entr%s without user_id; absent creators are Unknown",
                unattributed, "y" if unattributed == 1 else "ies",
            )
            absent = Unknown("stream entry without user_id in batch")

        for identifier in identifiers:
            verdicts.setdefault(identifier, absent)
        return verdicts

    def _parse_stream(self, stream: dict) -> Verdict:
        stream_id = stream.get("id")
        if not stream_id:
            return Unknown("stream entry without id")
        return Live(
            external_stream_id=str(stream_id),
            viewer_count=read_viewer_count(stream.get("viewer_count")),
            title=stream.get("title") or None,
            category=stream.get("game_name") or None,
            started_at=parse_timestamp(stream.get("started_at")),
        )
