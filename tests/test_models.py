"""
Model Tests

Tests for the tech lookup table, settings and wire-format parsing.
"""

import pytest

from compendium.models import (
    Guild,
    Identity,
    Profile,
    ProfileRegistry,
    ProfileSyncState,
    TechRecord,
    User,
)
from compendium.tech import get_tech_from_index, is_valid_tech


class TestTechLookup:
    """Tests for the static tech table."""

    def test_known_ids(self):
        assert get_tech_from_index(42) != ""
        assert get_tech_from_index(302) == "Laser"
        assert get_tech_from_index("302") == "Laser"
        assert is_valid_tech(101)

    @pytest.mark.parametrize("tech_id", [0, -1, 99999, None, "laser", True, 42.7, "42.7"])
    def test_unknown_ids(self, tech_id):
        assert get_tech_from_index(tech_id) == ""
        assert not is_valid_tech(tech_id)


class TestSettings:
    """Tests for configuration."""

    def test_defaults(self):
        from compendium.config import Settings

        settings = Settings()
        assert settings.storage_key == "hscompendium"
        assert settings.refresh_interval_seconds == 300
        assert settings.refresh_interval_ms == 300_000
        assert settings.token_max_age_ms == 90 * 24 * 60 * 60 * 1000
        assert not settings.api_url.endswith("/")

    def test_env_override(self, monkeypatch):
        from compendium.config import Settings

        monkeypatch.setenv("COMPENDIUM_API_URL", "http://localhost:8080/compendium/")
        monkeypatch.setenv("COMPENDIUM_REFRESH_INTERVAL_SECONDS", "60")
        monkeypatch.setenv("COMPENDIUM_LOG_LEVEL", "debug")

        settings = Settings()
        assert settings.api_url == "http://localhost:8080/compendium"
        assert settings.refresh_interval_seconds == 60
        assert settings.log_level == "DEBUG"

    def test_rejects_non_positive_interval(self):
        from compendium.config import Settings
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            Settings(refresh_interval_seconds=0)


class TestModels:
    """Tests for wire-format parsing."""

    def test_identity_keeps_unknown_fields(self):
        raw = {
            "token": "t",
            "user": {"id": 5, "username": "pilot", "avatarUrl": "https://x/a.png", "locale": "en"},
            "guild": {"id": "g", "name": "Corp", "type": "discord"},
        }

        identity = Identity.from_dict(raw)

        assert identity.user.id == "5"
        assert identity.user.avatar_url == "https://x/a.png"
        assert identity.to_dict()["user"]["locale"] == "en"
        assert identity.to_dict()["guild"]["type"] == "discord"

    @pytest.mark.parametrize("raw", [
        None,
        {"token": "t", "user": {"id": "1", "username": "u"}},
        {"token": 7, "user": {"id": "1", "username": "u"}, "guild": {"id": "g", "name": "n"}},
        {"token": "t", "user": {"id": "1"}, "guild": {"id": "g", "name": "n"}},
    ])
    def test_identity_rejects_malformed(self, raw):
        with pytest.raises(ValueError):
            Identity.from_dict(raw)

    def test_profile_state_wire_format(self):
        state = ProfileSyncState.from_dict({"ver": 3, "inSync": 0, "techLevels": {"42": {"level": 3, "ts": 9}}})

        assert state == ProfileSyncState(version=3, sync_flag=0, tech_levels={42: TechRecord(level=3, ts=9)})
        assert state.to_dict()["techLevels"] == {"42": {"level": 3, "ts": 9}}

    def test_negative_level_rejected(self):
        with pytest.raises(ValueError):
            TechRecord.from_dict({"level": -2, "ts": 0})

    def test_profile_resolve(self):
        assert Profile.resolve(None) == Profile.DEFAULT
        assert Profile.resolve("") == Profile.DEFAULT
        assert Profile.resolve("Twink") == "Twink"
        assert Profile.resolve("DEFAULT") == "DEFAULT"

    def test_registry_get_or_create(self):
        registry = ProfileRegistry()

        created = registry.get_or_create("Main")
        assert created == ProfileSyncState(version=1, sync_flag=1, tech_levels={})
        assert registry.get_or_create("Main") is created
        assert registry.get("main") is None
        assert len(registry) == 1

    def test_user_and_guild_defaults(self):
        user = User.from_dict({"id": "1", "username": "u"})
        guild = Guild.from_dict({"id": "g", "name": "n"})
        assert user.alts == []
        assert guild.icon == ""
