"""
Data models for the Compendium sync client.

Wire format follows the Compendium service JSON: identities carry a token plus
user and guild descriptors, profile state is ``{"ver", "inSync", "techLevels"}``
and each tech record is ``{"level", "ts"}`` with ``ts`` in epoch milliseconds.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

logger = logging.getLogger("compendium.models")


# =============================================================================
# Enumerations
# =============================================================================

class SyncMode(Enum):
    """How the server treats a sync request."""
    GET = "get"  # server state wins, local payload ignored
    SYNC = "sync"  # server merges the submitted payload and returns the result


class Profile:
    """Profile (alt) naming. The unnamed profile is stored as ``Profile.DEFAULT``."""

    DEFAULT = "default"

    @classmethod
    def resolve(cls, name: Optional[str]) -> str:
        """Map an empty or missing name to the default profile."""
        if name is None or name == "":
            return cls.DEFAULT
        if not isinstance(name, str):
            raise TypeError(f"Profile name must be a string, got {type(name).__name__}")
        return name


# =============================================================================
# Identity
# =============================================================================

def _require(d: Any, key: str, kind: type) -> Any:
    if not isinstance(d, dict):
        raise ValueError(f"Expected an object, got {type(d).__name__}")
    value = d.get(key)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ValueError(f"Missing or malformed field '{key}'")
    return value


@dataclass
class User:
    """Account the identity belongs to."""
    id: str
    username: str
    discriminator: str = ""
    avatar: str = ""
    avatar_url: str = ""
    alts: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("id", "username", "discriminator", "avatar", "avatarUrl", "alts")

    def to_dict(self) -> dict:
        d = dict(self.extra)
        d.update({
            "id": self.id,
            "username": self.username,
            "discriminator": self.discriminator,
            "avatar": self.avatar,
            "avatarUrl": self.avatar_url,
            "alts": list(self.alts),
        })
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "User":
        return cls(
            id=str(_require(d, "id", (str, int))),
            username=_require(d, "username", str),
            discriminator=str(d.get("discriminator") or ""),
            avatar=str(d.get("avatar") or ""),
            avatar_url=str(d.get("avatarUrl") or ""),
            alts=[str(a) for a in (d.get("alts") or [])],
            extra={k: v for k, v in d.items() if k not in cls._KNOWN},
        )


@dataclass
class Guild:
    """Guild (organization) the identity was issued for."""
    id: str
    name: str
    icon: str = ""
    url: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("id", "name", "icon", "url")

    def to_dict(self) -> dict:
        d = dict(self.extra)
        d.update({"id": self.id, "name": self.name, "icon": self.icon, "url": self.url})
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Guild":
        return cls(
            id=str(_require(d, "id", (str, int))),
            name=_require(d, "name", str),
            icon=str(d.get("icon") or ""),
            url=str(d.get("url") or ""),
            extra={k: v for k, v in d.items() if k not in cls._KNOWN},
        )


@dataclass
class Identity:
    """Capability token plus the user and guild it was issued for."""
    token: str
    user: User
    guild: Guild

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "token": self.token,
            "user": self.user.to_dict(),
            "guild": self.guild.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Identity":
        """Create from dictionary. Raises ValueError if malformed."""
        token = _require(d, "token", str)
        if not token:
            raise ValueError("Identity token is empty")
        return cls(
            token=token,
            user=User.from_dict(d.get("user")),
            guild=Guild.from_dict(d.get("guild")),
        )


# =============================================================================
# Tech levels
# =============================================================================

@dataclass
class TechRecord:
    """Level of one tech and when it was last set (epoch millis)."""
    level: int
    ts: int = 0

    def to_dict(self) -> dict:
        return {"level": self.level, "ts": self.ts}

    @classmethod
    def from_dict(cls, d: dict) -> "TechRecord":
        level = _require(d, "level", int)
        if level < 0:
            raise ValueError(f"Negative tech level: {level}")
        ts = d.get("ts", 0)
        if not isinstance(ts, (int, float)) or isinstance(ts, bool):
            raise ValueError("Malformed field 'ts'")
        return cls(level=level, ts=int(ts))


TechLevels = dict[int, TechRecord]


def tech_levels_to_dict(levels: TechLevels) -> dict[str, dict]:
    """Tech ids become string keys on the wire."""
    return {str(tech_id): record.to_dict() for tech_id, record in levels.items()}


def tech_levels_from_dict(d: Any) -> TechLevels:
    if d is None:
        return {}
    if not isinstance(d, dict):
        raise ValueError("Malformed field 'techLevels'")
    levels: TechLevels = {}
    for key, value in d.items():
        try:
            tech_id = int(key)
        except (TypeError, ValueError):
            raise ValueError(f"Malformed tech id: {key!r}")
        levels[tech_id] = TechRecord.from_dict(value)
    return levels


@dataclass
class ProfileSyncState:
    """One profile's synchronized snapshot.

    ``version`` and ``sync_flag`` are assigned by the server and only
    round-tripped by the client.
    """
    version: int = 1
    sync_flag: int = 1
    tech_levels: TechLevels = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "ver": self.version,
            "inSync": self.sync_flag,
            "techLevels": tech_levels_to_dict(self.tech_levels),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ProfileSyncState":
        if not isinstance(d, dict):
            raise ValueError(f"Expected an object, got {type(d).__name__}")
        return cls(
            version=int(d.get("ver", 1)),
            sync_flag=int(d.get("inSync", 1)),
            tech_levels=tech_levels_from_dict(d.get("techLevels")),
        )


# =============================================================================
# Profile registry
# =============================================================================

class ProfileRegistry:
    """Profile name -> ProfileSyncState, with lazy creation of new profiles."""

    def __init__(self, profiles: Optional[dict[str, ProfileSyncState]] = None):
        self._profiles: dict[str, ProfileSyncState] = dict(profiles or {})

    def get(self, name: str) -> Optional[ProfileSyncState]:
        return self._profiles.get(name)

    def get_or_create(self, name: str) -> ProfileSyncState:
        """Return the state for ``name``, creating an empty one if unseen."""
        state = self._profiles.get(name)
        if state is None:
            logger.debug(f"Creating profile state for '{name}'")
            state = ProfileSyncState()
            self._profiles[name] = state
        return state

    def replace(self, name: str, state: ProfileSyncState) -> None:
        self._profiles[name] = state

    def clear(self) -> None:
        self._profiles.clear()

    def names(self) -> list[str]:
        return list(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[str]:
        return iter(self._profiles)

    def to_dict(self) -> dict:
        return {name: state.to_dict() for name, state in self._profiles.items()}

    @classmethod
    def from_dict(cls, d: Any) -> "ProfileRegistry":
        """Load stored profiles. Entries that fail to parse are skipped."""
        registry = cls()
        if not isinstance(d, dict):
            return registry
        for name, raw in d.items():
            try:
                registry._profiles[str(name)] = ProfileSyncState.from_dict(raw)
            except (TypeError, ValueError) as e:
                logger.warning(f"Dropping unreadable profile '{name}': {e}")
        return registry
