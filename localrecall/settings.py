"""User settings model, legacy-field migration and persistence.

Settings are stored as one JSON document under the ``user_settings`` key of
the settings table. The stored shape uses camelCase keys::

    {
        "activeProvider": "ollama",
        "providers": {"ollama": {"enabled": true, "endpoint": "...", ...}},
        "ollamaEndpoint": "...", "ollamaModel": "...", "ollamaTemperature": 0.7
    }

Older records only carry the flat ``ollama*`` fields (and sometimes
``defaultModel`` / ``temperature``). :func:`normalize_settings` folds those
into the ``providers`` block once at load time, and :func:`to_record`
writes them back in sync with the ``ollama`` block.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

from . import config
from .providers.base import ProviderId

LOGGER = logging.getLogger(__name__)

SETTINGS_KEY = "user_settings"

_PROVIDER_FIELDS = {
    "enabled": "enabled",
    "apiKey": "api_key",
    "endpoint": "endpoint",
    "model": "model",
    "temperature": "temperature",
}
_LEGACY_FIELDS = ("ollamaEndpoint", "ollamaModel", "ollamaTemperature", "defaultModel", "temperature")


def validate_temperature(value: Optional[float]) -> Optional[float]:
    """Return ``value`` as a float, raising ValueError when outside [0, 1]."""
    if value is None:
        return None
    try:
        temperature = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Temperature must be a number, got {value!r}") from exc
    if not 0.0 <= temperature <= 1.0:
        raise ValueError(f"Temperature must be between 0 and 1, got {temperature}")
    return temperature


def coerce_provider_id(value: Any) -> ProviderId:
    """Map a string or ProviderId to the enum, raising ValueError for unknown ids."""
    if isinstance(value, ProviderId):
        return value
    try:
        return ProviderId(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown provider: {value!r}") from exc


@dataclass(frozen=True)
class ProviderSettings:
    """Stored configuration for one provider."""

    enabled: bool = False
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None

    @classmethod
    def defaults(cls, provider: ProviderId) -> "ProviderSettings":
        is_local = provider is ProviderId.OLLAMA
        return cls(
            enabled=is_local,
            endpoint=config.DEFAULT_OLLAMA_ENDPOINT if is_local else None,
            model=config.DEFAULT_MODELS[provider.value],
            temperature=config.DEFAULT_TEMPERATURE,
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any], base: "ProviderSettings") -> "ProviderSettings":
        """Overlay a stored camelCase block onto ``base``; missing keys keep base values."""
        values: Dict[str, Any] = {}
        for key, attr in _PROVIDER_FIELDS.items():
            if record.get(key) is not None:
                values[attr] = record[key]
        if "enabled" in values:
            values["enabled"] = bool(values["enabled"])
        return replace(base, **values)

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"enabled": self.enabled}
        for key, attr in _PROVIDER_FIELDS.items():
            value = getattr(self, attr)
            if key != "enabled" and value is not None:
                record[key] = value
        return record

    def masked(self) -> Dict[str, Any]:
        """Public view with the API key reduced to a presence flag and hint."""
        key = self.api_key or ""
        return {
            "enabled": self.enabled,
            "endpoint": self.endpoint,
            "model": self.model,
            "temperature": self.temperature,
            "has_api_key": bool(key),
            "api_key_hint": (f"...{key[-4:]}" if len(key) > 8 else "****") if key else None,
        }


@dataclass(frozen=True)
class UserSettings:
    """Normalized user settings snapshot.

    ``extra`` carries unrelated keys of the stored record (theme, review
    settings) so they survive a round trip untouched.
    """

    active_provider: ProviderId = ProviderId.OLLAMA
    providers: Dict[ProviderId, ProviderSettings] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def provider(self, identity: ProviderId) -> ProviderSettings:
        return self.providers.get(identity) or ProviderSettings.defaults(identity)

    def with_provider(self, identity: ProviderId, settings: ProviderSettings) -> "UserSettings":
        providers = dict(self.providers)
        providers[identity] = settings
        return replace(self, providers=providers)

    def with_active(self, identity: ProviderId) -> "UserSettings":
        return replace(self, active_provider=identity)


def _legacy_ollama(record: Mapping[str, Any]) -> ProviderSettings:
    """Build the local-model block from the flat legacy fields."""
    base = ProviderSettings.defaults(ProviderId.OLLAMA)
    temperature = record.get("ollamaTemperature")
    if temperature is None:
        temperature = record.get("temperature")
    return replace(
        base,
        endpoint=record.get("ollamaEndpoint") or base.endpoint,
        model=record.get("ollamaModel") or record.get("defaultModel") or base.model,
        temperature=temperature if temperature is not None else base.temperature,
    )


def normalize_settings(record: Optional[Mapping[str, Any]]) -> UserSettings:
    """Turn a stored settings record (possibly legacy or empty) into a snapshot.

    Every provider gets a block, filled with defaults where nothing is
    stored. A missing ``providers.ollama`` block is derived from the legacy
    flat fields. An unknown ``activeProvider`` falls back to ``ollama``.
    """
    record = dict(record or {})
    stored_providers = record.get("providers") or {}
    if not isinstance(stored_providers, Mapping):
        LOGGER.warning("Ignoring malformed providers block in stored settings")
        stored_providers = {}

    providers: Dict[ProviderId, ProviderSettings] = {}
    for identity in ProviderId:
        block = stored_providers.get(identity.value)
        if isinstance(block, Mapping):
            providers[identity] = ProviderSettings.from_record(block, ProviderSettings.defaults(identity))
        elif identity is ProviderId.OLLAMA:
            providers[identity] = _legacy_ollama(record)
        else:
            providers[identity] = ProviderSettings.defaults(identity)

    try:
        active = coerce_provider_id(record.get("activeProvider") or ProviderId.OLLAMA.value)
    except ValueError:
        LOGGER.warning("Unknown active provider %r in settings; using ollama", record.get("activeProvider"))
        active = ProviderId.OLLAMA

    extra = {
        key: value
        for key, value in record.items()
        if key not in ("activeProvider", "providers", *_LEGACY_FIELDS)
    }
    return UserSettings(active_provider=active, providers=providers, extra=extra)


def to_record(settings: UserSettings) -> Dict[str, Any]:
    """Serialize a snapshot, mirroring the local-model block into the legacy fields."""
    record: Dict[str, Any] = dict(settings.extra)
    record["activeProvider"] = settings.active_provider.value
    record["providers"] = {
        identity.value: block.to_record() for identity, block in settings.providers.items()
    }
    local = settings.provider(ProviderId.OLLAMA)
    record["ollamaEndpoint"] = local.endpoint
    record["ollamaModel"] = local.model
    record["ollamaTemperature"] = local.temperature
    return record


class SettingsStore:
    """Load and save the user settings document through DatabaseStorage."""

    def __init__(self, storage: Optional[Any] = None) -> None:
        if storage is None:
            from .storage import DatabaseStorage

            storage = DatabaseStorage()
        self._storage = storage

    def load(self) -> UserSettings:
        raw = self._storage.read_setting(SETTINGS_KEY)
        if raw is not None and not isinstance(raw, Mapping):
            LOGGER.warning("Stored user settings are not an object; using defaults")
            raw = None
        return normalize_settings(raw)

    def save(self, settings: UserSettings) -> None:
        self._storage.write_settings({SETTINGS_KEY: to_record(settings)})

    def reset(self) -> None:
        self._storage.delete_setting(SETTINGS_KEY)
