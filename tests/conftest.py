"""
Shared fixtures: an in-memory stand-in for the Compendium API and a
controllable clock.
"""

import pytest

from compendium.config import Settings
from compendium.models import Guild, Identity, ProfileSyncState, SyncMode, User
from compendium.session import Compendium
from compendium.storage import MemoryStore

START_TIME = 1_700_000_000.0  # seconds


def make_identity(token: str = "token-1") -> Identity:
    return Identity(
        token=token,
        user=User(id="1001", username="pilot"),
        guild=Guild(id="2002", name="Red Star Corp"),
    )


class FakeClock:
    """Callable clock returning seconds, advanced by hand."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    @property
    def millis(self) -> int:
        return int(self.now * 1000)


class FakeApiClient:
    """Records calls and answers like the Compendium service.

    ``get`` returns the stored server state; ``sync`` overlays the submitted
    levels onto it and bumps the version.
    """

    def __init__(self):
        self.identity = make_identity()
        self.server_state: dict[str, ProfileSyncState] = {}
        self.sync_calls: list[tuple] = []
        self.connect_calls: list[Identity] = []
        self.refresh_calls: list[str] = []
        self.check_calls: list[str] = []
        self.sync_error = None
        self.refresh_error = None
        self.connect_error = None
        self.check_error = None
        self.closed = False
        self._refresh_count = 0

    async def check_identity(self, code):
        self.check_calls.append(code)
        if self.check_error:
            raise self.check_error
        return self.identity

    async def connect(self, identity):
        self.connect_calls.append(identity)
        if self.connect_error:
            raise self.connect_error
        return self.identity

    async def refresh_connection(self, token):
        self.refresh_calls.append(token)
        if self.refresh_error:
            raise self.refresh_error
        self._refresh_count += 1
        self.identity = make_identity(f"token-refreshed-{self._refresh_count}")
        return self.identity

    async def sync(self, profile, token, mode, tech_levels):
        mode = SyncMode(mode)
        self.sync_calls.append((profile, token, mode, dict(tech_levels)))
        if self.sync_error:
            raise self.sync_error

        state = self.server_state.get(profile, ProfileSyncState())
        if mode == SyncMode.SYNC:
            merged = dict(state.tech_levels)
            merged.update(tech_levels)
            state = ProfileSyncState(version=state.version + 1, sync_flag=1, tech_levels=merged)
            self.server_state[profile] = state
        return ProfileSyncState(
            version=state.version,
            sync_flag=state.sync_flag,
            tech_levels=dict(state.tech_levels),
        )

    async def corpdata(self, token, corp_id=None, role_id=None):
        return {"token": token, "corpId": corp_id, "roleId": role_id}

    async def get_user_corporations(self, token):
        return {"corporations": [{"id": "2002", "name": "Red Star Corp"}]}

    async def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api():
    return FakeApiClient()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def settings(tmp_path):
    return Settings(storage_path=tmp_path / "storage.db")


@pytest.fixture
def session(api, store, settings, clock):
    return Compendium(client=api, store=store, settings=settings, clock=clock)


@pytest.fixture
def events(session):
    """Collects every emitted event as (kind, args)."""
    received = []
    for kind in ("connected", "disconnected", "connectfailed", "sync"):
        session.on(kind, lambda *args, _kind=kind: received.append((_kind, args)))
    return received
