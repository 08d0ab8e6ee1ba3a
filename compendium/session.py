"""
Compendium session: identity lifecycle, profile sync and local persistence.

Wraps the Compendium API client with persistence in a local key/value store
and provides a simpler, event-driven interface for front ends.

Features:
- Connect-code flow with token refresh for long-lived sessions
- Per-profile ("alt") tech level tracking
- Replace-on-response sync: the server's returned state always wins
- Recovery from corrupted local snapshots
- Background loop that re-syncs every few minutes
"""

import asyncio
import json
import logging
import time
from typing import Any, Callable, Optional, Union

from .client import CompendiumApiClient
from .config import Settings, get_settings
from .errors import (
    ApiError,
    AuthError,
    CompendiumError,
    InvalidArgumentError,
    NotConnectedError,
    StorageCorruptionError,
    SyncError,
)
from .events import EventEmitter, EventKind, Handler
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
from .storage import KeyValueStore, SQLiteStore
from .tech import is_valid_tech

logger = logging.getLogger("compendium.session")


def _as_millis(value: Any) -> int:
    """Stored timestamps default to 0 when missing or unreadable."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unreadable timestamp: {value!r}")
        return 0


class Compendium:
    """Session object owning the identity, profile registry and sync timers."""

    def __init__(
        self,
        client: Optional[CompendiumApiClient] = None,
        store: Optional[KeyValueStore] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or CompendiumApiClient(
            self.settings.api_url,
            timeout=self.settings.request_timeout,
        )
        self.store = store if store is not None else SQLiteStore(self.settings.storage_path)
        self.events = EventEmitter()
        self._clock = clock or time.time

        self.identity: Optional[Identity] = None
        self.profiles = ProfileRegistry()
        self.last_sync = 0  # epoch millis
        self.last_token_refresh = 0  # epoch millis
        self.selected_alt = Profile.DEFAULT

        self._sync_locks: dict[str, asyncio.Lock] = {}
        self._timer: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._generation = 0  # bumped whenever local state is cleared

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # === Events ===

    def on(self, event: Union[EventKind, str], handler: Handler) -> Handler:
        return self.events.on(event, handler)

    def off(self, event: Union[EventKind, str], handler: Handler) -> None:
        self.events.off(event, handler)

    # === Accessors ===

    @property
    def is_connected(self) -> bool:
        return self.identity is not None

    @property
    def selected_profile(self) -> str:
        return self.selected_alt

    def get_user(self) -> Optional[User]:
        return self.identity.user if self.identity else None

    def get_guild(self) -> Optional[Guild]:
        return self.identity.guild if self.identity else None

    def get_tech_levels(self) -> Optional[TechLevels]:
        """Tech levels of the selected profile, or None if there are none yet."""
        if self.identity is None:
            return None
        state = self.profiles.get(self.selected_alt)
        if state is None:
            return None
        return dict(state.tech_levels)

    # === Lifecycle ===

    async def initialize(self) -> Optional[Identity]:
        """Restore the stored session, bring it up to date and arm the refresh loop."""
        try:
            identity = self.read_snapshot()
            if identity is not None:
                state = self.profiles.get_or_create(self.selected_alt)
                has_data = len(state.tech_levels) > 0

                await self.sync_profile(self.selected_alt, SyncMode.SYNC if has_data else SyncMode.GET)
                if not has_data:
                    # No local progress: the stored token may be stale
                    await self._refresh_token()

                self.events.emit(EventKind.CONNECTED, self.identity)
            else:
                logger.info("No stored identity, starting disconnected")
        finally:
            self._start_timer()
        return self.identity

    async def shutdown(self) -> None:
        """Disarm the refresh loop and close the API client."""
        if self._timer:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None

        close = getattr(self.client, "close", None)
        if close is not None:
            await close()
        logger.info("Compendium session shut down")

    async def __aenter__(self) -> "Compendium":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    # === Connection ===

    async def check_connect_code(self, code: str) -> Identity:
        """Resolve a connect code into the identity it grants, without connecting.

        The result should be shown to the user for confirmation and then
        passed to connect().
        """
        try:
            return await self.client.check_identity(code)
        except ApiError as e:
            raise AuthError(f"Invalid connect code: {e.message}") from e

    async def connect(self, identity: Identity) -> Identity:
        """Start a new session with a confirmed identity, replacing any existing one."""
        self.clear_local_state()
        try:
            confirmed = await self.client.connect(identity)
        except ApiError as e:
            raise AuthError(f"Connect rejected: {e.message}") from e

        self.identity = confirmed
        self.last_token_refresh = self._now_ms()
        self.write_snapshot()
        self.events.emit(EventKind.CONNECTED, confirmed)

        await self.sync_profile(self.selected_alt, SyncMode.GET)
        return confirmed

    def logout(self) -> None:
        self.events.emit(EventKind.DISCONNECTED)
        self.clear_local_state()
        logger.info("Logged out")

    async def _refresh_token(self) -> Identity:
        if self.identity is None:
            raise NotConnectedError("Cannot refresh token - not connected")
        generation = self._generation
        try:
            identity = await self.client.refresh_connection(self.identity.token)
        except CompendiumError as e:
            raise AuthError(f"Token refresh failed: {e}") from e

        if self._generation != generation:
            raise NotConnectedError("Session ended during token refresh")

        self.identity = identity
        self.last_token_refresh = self._now_ms()
        self.write_snapshot()
        logger.info("Token refreshed")
        return identity

    # === Profiles and tech levels ===

    def switch_alt(self, name: Optional[str]) -> Optional[asyncio.Task]:
        """Select a profile and fetch its server state in the background.

        Returns the background task, or None when not connected. Failures are
        logged and emitted as ``connectfailed``.
        """
        self.selected_alt = Profile.resolve(name)
        if self.identity is None:
            logger.debug(f"Selected profile '{self.selected_alt}' while disconnected")
            return None

        self.profiles.get_or_create(self.selected_alt)
        task = asyncio.ensure_future(self.sync_profile(self.selected_alt, SyncMode.GET))
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background sync failed: {exc}")
            self.events.emit(EventKind.CONNECT_FAILED, str(exc))

    async def set_tech_level(self, tech_id: int, level: int) -> None:
        """Set a tech level on the selected profile and push it to the server."""
        if self.identity is None:
            raise NotConnectedError("not connected")
        if not is_valid_tech(tech_id):
            raise InvalidArgumentError(f"Invalid tech id: {tech_id!r}")
        if not isinstance(level, int) or isinstance(level, bool) or level < 0:
            raise InvalidArgumentError(f"Invalid tech level: {level!r}")

        state = self.profiles.get_or_create(self.selected_alt)
        state.tech_levels[int(tech_id)] = TechRecord(level=level, ts=self._now_ms())

        await self.sync_profile(self.selected_alt, SyncMode.SYNC)

    # === Sync ===

    async def sync_profile(
        self,
        profile: str,
        mode: Union[SyncMode, str],
    ) -> Optional[ProfileSyncState]:
        """Exchange a profile's state with the server and adopt the response.

        ``get`` fetches the server's state and ignores the local levels;
        ``sync`` submits the local levels for the server to merge. Either way
        the returned state replaces the local one. Syncs of the same profile
        run one at a time.
        """
        mode = SyncMode(mode)
        profile = Profile.resolve(profile)
        if self.identity is None:
            raise NotConnectedError("Cannot sync user data - not connected")

        lock = self._sync_locks.setdefault(profile, asyncio.Lock())
        async with lock:
            identity = self.identity
            generation = self._generation
            if identity is None:
                raise NotConnectedError("Cannot sync user data - not connected")

            state = self.profiles.get_or_create(profile)
            try:
                result = await self.client.sync(profile, identity.token, mode, dict(state.tech_levels))
            except Exception as e:
                logger.error(f"Error syncing profile '{profile}' ({mode.value}): {e}")
                raise SyncError(f"Failed to sync data: {e}", cause=e) from e

            if self._generation != generation:
                logger.warning(f"Discarding sync response for '{profile}': session ended")
                return None

            self.profiles.replace(profile, result)
            self.last_sync = self._now_ms()
            self.write_snapshot()

        logger.debug(f"Synced profile '{profile}' ({mode.value}): {len(result.tech_levels)} techs")
        self.events.emit(EventKind.SYNC, result.tech_levels)
        return result

    # === Corporation queries ===

    async def corpdata(
        self,
        corp_id: Optional[str] = None,
        role_id: Optional[str] = None,
    ) -> dict:
        if self.identity is None:
            raise NotConnectedError("not connected")
        return await self.client.corpdata(self.identity.token, corp_id=corp_id, role_id=role_id)

    async def get_user_corporations(self) -> dict:
        if self.identity is None:
            raise NotConnectedError("not connected")
        return await self.client.get_user_corporations(self.identity.token)

    # === Persistence ===

    def write_snapshot(self) -> None:
        """Persist identity, profiles and timestamps. Does nothing when disconnected."""
        if self.identity is None:
            return

        user_data = self.profiles.to_dict() or {Profile.DEFAULT: ProfileSyncState().to_dict()}
        data = {
            "ident": self.identity.to_dict(),
            "userData": user_data,
            "refresh": self.last_sync,
            "tokenRefresh": self.last_token_refresh,
        }
        self.store.set(self.settings.storage_key, json.dumps(data))

    def read_snapshot(self) -> Optional[Identity]:
        """Load the stored session. Returns the identity, or None if there is none.

        A snapshot that cannot be parsed is discarded: local state is cleared
        and ``connectfailed`` is emitted with the reason.
        """
        raw = self.store.get(self.settings.storage_key)
        if not raw:
            self.clear_local_state()
            return None

        try:
            identity, profiles, last_sync, last_token_refresh = self._parse_snapshot(raw)
        except StorageCorruptionError as e:
            logger.warning(f"Discarding stored session: {e}")
            self.clear_local_state()
            self.events.emit(EventKind.CONNECT_FAILED, str(e))
            return None

        if len(profiles) == 0:
            profiles.get_or_create(Profile.DEFAULT)

        self.identity = identity
        self.profiles = profiles
        self.last_sync = last_sync
        self.last_token_refresh = last_token_refresh
        logger.info(f"Restored session for {identity.user.username} ({len(profiles)} profiles)")
        return identity

    @staticmethod
    def _parse_snapshot(raw: str) -> tuple[Identity, ProfileRegistry, int, int]:
        try:
            stored = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise StorageCorruptionError(f"Data corrupt: {e}") from e

        if not isinstance(stored, dict) or not stored.get("ident"):
            raise StorageCorruptionError("Data corrupt")

        try:
            identity = Identity.from_dict(stored["ident"])
        except (TypeError, ValueError) as e:
            raise StorageCorruptionError(f"Data corrupt: {e}") from e

        return (
            identity,
            ProfileRegistry.from_dict(stored.get("userData")),
            _as_millis(stored.get("refresh")),
            _as_millis(stored.get("tokenRefresh")),
        )

    def clear_local_state(self) -> None:
        self._generation += 1
        self.store.remove(self.settings.storage_key)
        self.identity = None
        self.last_token_refresh = 0
        self.last_sync = 0
        self.profiles.clear()

    # === Background refresh ===

    def _start_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            return
        self._timer = asyncio.ensure_future(self._refresh_loop())
        logger.debug(f"Refresh loop armed ({self.settings.refresh_interval_seconds:.0f}s)")

    async def _refresh_loop(self) -> None:
        """Run tick() every refresh interval until shutdown()."""
        while True:
            await asyncio.sleep(self.settings.refresh_interval_seconds)
            try:
                await self.tick()
            except SyncError as e:
                logger.error(f"Background sync failed: {e}")
                self.events.emit(EventKind.CONNECT_FAILED, str(e))
            except Exception as e:
                logger.error(f"Error in refresh loop: {e}")

    async def tick(self) -> None:
        """One refresh pass: renew a stale token, then re-sync if due.

        A failed token refresh ends the session: local state is cleared,
        ``connectfailed`` is emitted and the AuthError is re-raised.
        """
        if self.identity is None:
            return

        now = self._now_ms()
        if now - self.last_token_refresh > self.settings.token_max_age_ms:
            try:
                await self._refresh_token()
            except AuthError as e:
                self.clear_local_state()
                self.events.emit(EventKind.CONNECT_FAILED, str(e))
                raise

        if now - self.last_sync > self.settings.refresh_interval_ms:
            await self.sync_profile(self.selected_alt, SyncMode.SYNC)
