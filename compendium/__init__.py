"""
Compendium - tech level sync client

Keeps a player's tech levels for one or more profiles ("alts") in sync
between the Compendium service and a local persistent cache.
"""

from .client import CompendiumApiClient
from .config import Settings, get_settings
from .errors import (
    ApiError,
    AuthError,
    CompendiumError,
    InvalidArgumentError,
    NotConnectedError,
    ServerError,
    StorageCorruptionError,
    SyncError,
)
from .events import EventEmitter, EventKind
from .models import (
    Guild,
    Identity,
    Profile,
    ProfileRegistry,
    ProfileSyncState,
    SyncMode,
    TechLevels,
    TechRecord,
    User,
)
from .session import Compendium
from .storage import KeyValueStore, MemoryStore, SQLiteStore
from .tech import get_tech_from_index, is_valid_tech

__version__ = "0.1.0"
__all__ = [
    # Main classes
    "Compendium",
    "CompendiumApiClient",
    "EventEmitter",

    # Storage
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",

    # Configuration
    "Settings",
    "get_settings",

    # Data models
    "Identity",
    "User",
    "Guild",
    "TechRecord",
    "TechLevels",
    "ProfileSyncState",
    "ProfileRegistry",
    "Profile",
    "SyncMode",
    "EventKind",

    # Exceptions
    "CompendiumError",
    "NotConnectedError",
    "InvalidArgumentError",
    "AuthError",
    "SyncError",
    "StorageCorruptionError",
    "ApiError",
    "ServerError",

    # Tech lookup
    "get_tech_from_index",
    "is_valid_tech",
]
