"""
Platform clients.

build_client(platform, settings) -> PlatformClient
"""
from __future__ import annotations

from watchtime.core.config import Settings
from watchtime.core.errors import UnsupportedPlatformError
from watchtime.models.creator import Platform
from watchtime.services.platforms.base import (
    NOT_LIVE,
    Failed,
    Live,
    NotLive,
    Ok,
    PlatformClient,
    TokenCache,
    Unknown,
    Verdict,
    ViewerCount,
)
from watchtime.services.platforms.kick import KickClient
from watchtime.services.platforms.twitch import TwitchClient

__all__ = [
    "NOT_LIVE",
    "Failed",
    "Live",
    "NotLive",
    "Ok",
    "PlatformClient",
    "TokenCache",
    "Unknown",
    "Verdict",
    "ViewerCount",
    "KickClient",
    "TwitchClient",
    "build_client",
]


def build_client(platform: str, settings: Settings) -> PlatformClient:
    """Construct the client for `platform` from configured credentials."""
    try:
        key = Platform(platform)
    except ValueError:
        raise UnsupportedPlatformError(platform) from None

    if key is Platform.twitch:
        client_id, secret, cls = settings.TWITCH_CLIENT_ID, settings.TWITCH_CLIENT_SECRET, TwitchClient
    else:
        client_id, secret, cls = settings.KICK_CLIENT_ID, settings.KICK_CLIENT_SECRET, KickClient

    if not client_id or not secret:
        raise UnsupportedPlatformError(platform, reason="credentials not configured")
    return cls(client_id, secret, timeout=settings.PLATFORM_TIMEOUT_SECONDS)
