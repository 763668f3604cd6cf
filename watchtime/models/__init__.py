from .creator import Creator, Platform
from .stream_session import StreamSession
from .viewer_sample import ViewerSample
from .creator_stat import CreatorDailyStat
from .poll_state import CreatorPollState

__all__ = [
    "Creator",
    "Platform",
    "StreamSession",
    "ViewerSample",
    "CreatorDailyStat",
    "CreatorPollState",
]
