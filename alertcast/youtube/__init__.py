from .api import LiveChatEndedError, YouTubeAPIClient, YouTubeAPIError
from .poller import PollingEngine, PollingState, PollingStateError

__all__ = [
    "LiveChatEndedError",
    "PollingEngine",
    "PollingState",
    "PollingStateError",
    "YouTubeAPIClient",
    "YouTubeAPIError",
]
