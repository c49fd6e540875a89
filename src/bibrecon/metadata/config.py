# ABOUTME: Provider and coordinator configuration with JSON import/export and validation.
# ABOUTME: ConfigManager holds global defaults plus per-provider overrides; validate() never raises.

import copy
import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any

from bibrecon.metadata.provider import RateLimitSettings, TimeoutSettings

logger = logging.getLogger(__name__)

_RATE_LIMIT_KEYS = {f.name for f in fields(RateLimitSettings)}
_TIMEOUT_KEYS = {f.name for f in fields(TimeoutSettings)}


@dataclass
class ProviderConfig:
    """Per-provider overrides. rate_limit and timeout hold partial settings."""

    enabled: bool = True
    priority: int | None = None
    rate_limit: dict[str, float] = field(default_factory=dict)
    timeout: dict[str, float] = field(default_factory=dict)
    endpoints: dict[str, str] = field(default_factory=dict)
    features: dict[str, bool] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrySettings:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    exponential_backoff: bool = True


@dataclass
class MetadataSystemConfig:
    """Everything the provider layer can be configured with."""

    default_rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    default_timeout: TimeoutSettings = field(default_factory=TimeoutSettings)
    max_concurrent_queries: int = 5
    coordinator_timeout: float = 60.0
    log_level: str = "info"
    retry: RetrySettings = field(default_factory=RetrySettings)
    providers: dict[str, ProviderConfig] = field(default_factory=dict)


DEFAULT_PROVIDERS: dict[str, ProviderConfig] = {
    "openlibrary": ProviderConfig(
        priority=80,
        rate_limit={"max_requests": 100, "window": 60.0, "request_delay": 0.1},
        timeout={"request_timeout": 15.0, "operation_timeout": 30.0},
        features={"fuzzy_search": True, "multi_criteria": True, "cover_images": True},
    ),
    "library-of-congress": ProviderConfig(
        priority=90,
        rate_limit={"max_requests": 50, "window": 60.0, "request_delay": 0.2},
        timeout={"request_timeout": 20.0, "operation_timeout": 45.0},
        features={"fuzzy_search": False, "multi_criteria": True, "cover_images": False},
    ),
    "wikidata": ProviderConfig(
        priority=70,
        rate_limit={"max_requests": 200, "window": 60.0, "request_delay": 0.05},
        timeout={"request_timeout": 12.0, "operation_timeout": 30.0},
        features={"fuzzy_search": True, "multi_criteria": True, "cover_images": False},
    ),
    "viaf": ProviderConfig(
        enabled=False,
        priority=50,
        rate_limit={"max_requests": 20, "window": 60.0, "request_delay": 1.0},
        timeout={"request_timeout": 15.0, "operation_timeout": 30.0},
    ),
}


def default_config() -> MetadataSystemConfig:
    return MetadataSystemConfig(providers=copy.deepcopy(DEFAULT_PROVIDERS))


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: tuple[str, ...] = ()


ConfigListener = Callable[[MetadataSystemConfig], None]


class ConfigManager:
    """Mutable holder for MetadataSystemConfig with change notification.

    Constructed once at startup and passed to whatever needs it; there is no
    module-level instance.
    """

    def __init__(self, config: MetadataSystemConfig | None = None) -> None:
        self._config = copy.deepcopy(config) if config is not None else default_config()
        self._listeners: list[ConfigListener] = []

    @property
    def config(self) -> MetadataSystemConfig:
        return copy.deepcopy(self._config)

    def update(self, data: dict[str, Any]) -> None:
        """Merge a partial config mapping (same shape as the JSON form) into the current one."""
        self._config = _merge(self._config, data)
        self._notify()

    def get_provider_config(self, name: str) -> ProviderConfig | None:
        return self._config.providers.get(name)

    def update_provider_config(self, name: str, **changes: Any) -> None:
        current = self._config.providers.get(name, ProviderConfig())
        self._config.providers[name] = replace(current, **changes)
        self._notify()

    def set_provider_enabled(self, name: str, enabled: bool) -> None:
        self.update_provider_config(name, enabled=enabled)

    def is_provider_enabled(self, name: str) -> bool:
        provider = self._config.providers.get(name)
        return provider.enabled if provider else False

    def get_effective_rate_limit(self, name: str) -> RateLimitSettings:
        provider = self._config.providers.get(name)
        if provider is None or not provider.rate_limit:
            return self._config.default_rate_limit
        return replace(self._config.default_rate_limit, **provider.rate_limit)

    def get_effective_timeout(self, name: str) -> TimeoutSettings:
        provider = self._config.providers.get(name)
        if provider is None or not provider.timeout:
            return self._config.default_timeout
        return replace(self._config.default_timeout, **provider.timeout)

    def get_effective_priority(self, name: str, default: int) -> int:
        provider = self._config.providers.get(name)
        if provider is None or provider.priority is None:
            return default
        return provider.priority

    def get_enabled_providers(self) -> list[str]:
        """Names of enabled providers, highest priority first."""
        enabled = [(n, p) for n, p in self._config.providers.items() if p.enabled]
        enabled.sort(key=lambda pair: pair[1].priority or 0, reverse=True)
        return [name for name, _ in enabled]

    def add_listener(self, listener: ConfigListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ConfigListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def load_json(self, text: str) -> None:
        """Merge a JSON document into the current config.

        Raises:
            ValueError: If the text is not valid JSON or has the wrong shape.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"Failed to parse configuration JSON: {exc}"
            raise ValueError(msg) from exc
        if not isinstance(data, dict):
            msg = "Failed to parse configuration JSON: top level must be an object"
            raise ValueError(msg)
        try:
            self.update(data)
        except TypeError as exc:
            msg = f"Failed to parse configuration JSON: {exc}"
            raise ValueError(msg) from exc

    def to_json(self) -> str:
        return json.dumps(asdict(self._config), indent=2)

    def reset(self) -> None:
        self._config = default_config()
        self._notify()

    def validate(self) -> ValidationResult:
        """Check the config for values that would break the provider layer."""
        config = self._config
        errors: list[str] = []

        if not _is_positive(config.max_concurrent_queries):
            errors.append("max_concurrent_queries must be greater than 0")
        if not _is_positive(config.coordinator_timeout):
            errors.append("coordinator_timeout must be greater than 0")
        if not _is_positive(config.default_rate_limit.max_requests):
            errors.append("default_rate_limit.max_requests must be greater than 0")
        if not _is_positive(config.default_timeout.request_timeout):
            errors.append("default_timeout.request_timeout must be greater than 0")

        for name, provider in config.providers.items():
            if provider.priority is not None and (
                not isinstance(provider.priority, int) or provider.priority < 0
            ):
                errors.append(f"Provider {name}: priority must be non-negative")
            for key in ("max_requests", "window"):
                value = provider.rate_limit.get(key)
                if value is not None and not _is_positive(value):
                    errors.append(f"Provider {name}: rate_limit.{key} must be greater than 0")
            for key in ("request_timeout", "operation_timeout"):
                value = provider.timeout.get(key)
                if value is not None and not _is_positive(value):
                    errors.append(f"Provider {name}: timeout.{key} must be greater than 0")
            unknown = (set(provider.rate_limit) - _RATE_LIMIT_KEYS) | (
                set(provider.timeout) - _TIMEOUT_KEYS
            )
            for key in sorted(unknown):
                errors.append(f"Provider {name}: unknown setting {key}")

        return ValidationResult(valid=not errors, errors=tuple(errors))

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.config)


def _merge(base: MetadataSystemConfig, data: dict[str, Any]) -> MetadataSystemConfig:
    merged = copy.deepcopy(base)
    for key, value in data.items():
        if key == "default_rate_limit":
            merged.default_rate_limit = replace(merged.default_rate_limit, **value)
        elif key == "default_timeout":
            merged.default_timeout = replace(merged.default_timeout, **value)
        elif key == "retry":
            merged.retry = replace(merged.retry, **value)
        elif key == "providers":
            for name, overrides in value.items():
                merged.providers[name] = _merge_provider(merged.providers.get(name), overrides)
        elif key in {"max_concurrent_queries", "coordinator_timeout", "log_level"}:
            setattr(merged, key, value)
        else:
            logger.warning("Ignoring unknown configuration key %s", key)
    return merged


def _merge_provider(base: ProviderConfig | None, overrides: dict[str, Any]) -> ProviderConfig:
    if base is None:
        return ProviderConfig(**overrides)
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        current = getattr(base, key, None)
        changes[key] = {**current, **value} if isinstance(current, dict) else value
    return replace(base, **changes)


def _is_positive(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool) and value > 0
