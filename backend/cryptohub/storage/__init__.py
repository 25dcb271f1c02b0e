"""Storage collaborator for users, coins and chat messages.

Public API:
    Datastore           - Combined abstract interface (UserStore, CoinStore, MessageStore)
    InMemoryDatastore   - Process-local backend
    create_datastore    - Factory that selects the SQL or in-memory backend
    ChatMessage, CoinRecord, MessageAuthor, RoomActivity, UserRecord - Records
"""

from .factory import create_datastore
from .interface import CoinStore, Datastore, MessageStore, UserStore
from .memory import InMemoryDatastore
from .models import ChatMessage, CoinRecord, MessageAuthor, RoomActivity, UserRecord

__all__ = [
    "ChatMessage",
    "CoinRecord",
    "CoinStore",
    "Datastore",
    "InMemoryDatastore",
    "MessageAuthor",
    "MessageStore",
    "RoomActivity",
    "UserRecord",
    "UserStore",
    "create_datastore",
]
