from .credentials import CredentialRepository
from .polling import PollingStateRepository
from .stores import CredentialStore, CursorStore, SubscriptionStore
from .subscription import SubscriptionRepository

__all__ = [
    "CredentialRepository",
    "CredentialStore",
    "CursorStore",
    "PollingStateRepository",
    "SubscriptionRepository",
    "SubscriptionStore",
]
