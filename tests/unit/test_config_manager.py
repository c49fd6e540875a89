# ABOUTME: Unit tests for ConfigManager: defaults, overrides, JSON import/export, and validation.
# ABOUTME: Also checks change listeners and that callers only ever see copies of the config.

import json

import pytest

from bibrecon.metadata.config import ConfigManager, MetadataSystemConfig, ProviderConfig
from bibrecon.metadata.provider import TimeoutSettings


class TestDefaults:
    """Tests for the built-in provider defaults."""

    def test_enabled_providers_by_priority(self) -> None:
        """Enabled providers are listed highest priority first; disabled ones are left out."""
        manager = ConfigManager()
        assert manager.get_enabled_providers() == ["library-of-congress", "openlibrary", "wikidata"]
        assert not manager.is_provider_enabled("viaf")
        assert not manager.is_provider_enabled("unknown")

    def test_effective_settings_merge_overrides(self) -> None:
        """Provider overrides are layered over the global defaults."""
        manager = ConfigManager()
        rate = manager.get_effective_rate_limit("openlibrary")
        assert (rate.max_requests, rate.window, rate.request_delay) == (100, 60.0, 0.1)
        assert manager.get_effective_timeout("openlibrary").request_timeout == 15.0
        assert manager.get_effective_timeout("unknown") == TimeoutSettings()
        assert manager.get_effective_priority("openlibrary", 0) == 80
        assert manager.get_effective_priority("unknown", 42) == 42

    def test_config_is_a_copy(self) -> None:
        """Mutating the returned config does not change the manager."""
        manager = ConfigManager()
        config = manager.config
        config.max_concurrent_queries = 99
        assert manager.config.max_concurrent_queries == 5


class TestJson:
    """Tests for JSON import and export."""

    def test_partial_provider_override(self) -> None:
        """Nested settings merge key by key."""
        manager = ConfigManager()
        manager.load_json('{"providers": {"openlibrary": {"rate_limit": {"max_requests": 10}}}}')
        rate = manager.get_effective_rate_limit("openlibrary")
        assert rate.max_requests == 10
        assert rate.window == 60.0

    def test_new_provider_added(self) -> None:
        """Unknown provider names create a new entry."""
        manager = ConfigManager()
        manager.load_json('{"providers": {"local": {"priority": 95}}}')
        assert manager.get_enabled_providers()[0] == "local"

    def test_top_level_settings(self) -> None:
        """Scalar and nested top-level settings are applied."""
        manager = ConfigManager()
        manager.load_json('{"coordinator_timeout": 5, "default_timeout": {"request_timeout": 2}}')
        assert manager.config.coordinator_timeout == 5
        assert manager.config.default_timeout.request_timeout == 2

    def test_invalid_json(self) -> None:
        """Malformed JSON is a ValueError."""
        with pytest.raises(ValueError, match="Failed to parse configuration JSON"):
            ConfigManager().load_json("{not json")

    def test_non_object_json(self) -> None:
        """A JSON array is rejected."""
        with pytest.raises(ValueError, match="top level must be an object"):
            ConfigManager().load_json("[]")

    def test_unknown_provider_field(self) -> None:
        """Unknown provider fields are a ValueError."""
        with pytest.raises(ValueError, match="Failed to parse configuration JSON"):
            ConfigManager().load_json('{"providers": {"openlibrary": {"colour": "blue"}}}')

    def test_export_round_trip(self) -> None:
        """Exported JSON can be parsed and reflects the settings."""
        data = json.loads(ConfigManager().to_json())
        assert data["providers"]["viaf"]["enabled"] is False
        assert data["default_rate_limit"]["max_requests"] == 100


class TestValidation:
    """Tests for ConfigManager.validate."""

    def test_defaults_are_valid(self) -> None:
        """The shipped defaults validate cleanly."""
        result = ConfigManager().validate()
        assert result.valid
        assert result.errors == ()

    def test_reports_every_problem(self) -> None:
        """Each bad value yields its own message."""
        config = MetadataSystemConfig(
            max_concurrent_queries=0,
            providers={
                "bad": ProviderConfig(
                    priority=-1, rate_limit={"window": 0, "burst": 3}, timeout={"request_timeout": -5}
                )
            },
        )
        result = ConfigManager(config).validate()
        assert not result.valid
        assert result.errors == (
            "max_concurrent_queries must be greater than 0",
            "Provider bad: priority must be non-negative",
            "Provider bad: rate_limit.window must be greater than 0",
            "Provider bad: timeout.request_timeout must be greater than 0",
            "Provider bad: unknown setting burst",
        )


class TestChanges:
    """Tests for updates, listeners, and reset."""

    def test_listener_notified(self) -> None:
        """Listeners receive the new config on every change."""
        manager = ConfigManager()
        seen: list[MetadataSystemConfig] = []
        manager.add_listener(seen.append)
        manager.set_provider_enabled("viaf", True)
        assert seen[-1].providers["viaf"].enabled
        manager.remove_listener(seen.append)
        manager.set_provider_enabled("viaf", False)
        assert len(seen) == 1

    def test_reset(self) -> None:
        """reset restores the defaults."""
        manager = ConfigManager()
        manager.update_provider_config("openlibrary", enabled=False)
        manager.reset()
        assert manager.is_provider_enabled("openlibrary")
