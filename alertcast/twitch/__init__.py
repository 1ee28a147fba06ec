from .api import SubscriptionConflictError, TokenRefreshResult, TwitchAPIClient, TwitchAPIError
from .auth import CredentialError, CredentialManager
from .chat import TwitchChatHandler
from .eventsub import SubscriptionError, SubscriptionManager
from .notifications import translate_notification
from .webhook import EventSubWebhook

__all__ = [
    "CredentialError",
    "CredentialManager",
    "EventSubWebhook",
    "SubscriptionConflictError",
    "SubscriptionError",
    "SubscriptionManager",
    "TokenRefreshResult",
    "TwitchAPIClient",
    "TwitchAPIError",
    "TwitchChatHandler",
    "translate_notification",
]
