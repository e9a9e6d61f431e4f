"""Provider manager: the single entry point for AI calls.

The manager resolves the active provider, overlays stored per-provider
settings onto call-time options and dispatches to the matching adapter.
Settings are loaded lazily from the settings store on first use; every
mutation is persisted before the in-memory snapshot is replaced.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Type, Union

from .errors import ProviderConfigurationError
from .health import ProbeResult
from .providers import (
    ChatOptions,
    ClaudeProvider,
    GeminiProvider,
    LLMProvider,
    Message,
    OllamaProvider,
    OpenAIProvider,
    ProviderId,
)
from .settings import (
    ProviderSettings,
    SettingsStore,
    UserSettings,
    coerce_provider_id,
    validate_temperature,
)
from .summarizer import BriefSummary, parse_summary_response

LOGGER = logging.getLogger(__name__)

_ADAPTERS: Dict[ProviderId, Type[LLMProvider]] = {
    ProviderId.OLLAMA: OllamaProvider,
    ProviderId.OPENAI: OpenAIProvider,
    ProviderId.GEMINI: GeminiProvider,
    ProviderId.CLAUDE: ClaudeProvider,
}

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that summarizes content concisely. "
    "Provide a brief summary and a list of key points."
)
SUMMARY_USER_PROMPT = """Please summarize the following content and extract 3-5 key points.
Format your response exactly as:

Brief Summary: <two or three sentences>

Key Points:
- <point>
- <point>

Content:
{content}"""

_UPDATABLE_FIELDS = ("enabled", "api_key", "endpoint", "model", "temperature")


class ProviderManager:
    """Facade over the provider adapters and the stored user settings.

    Args:
        store: Object exposing ``load() -> UserSettings`` and ``save(UserSettings)``.
            Defaults to the database-backed :class:`SettingsStore`.
        session: Optional ``requests.Session`` handed to every adapter.
    """

    def __init__(self, store: Optional[Any] = None, session: Optional[Any] = None) -> None:
        self._store = store if store is not None else SettingsStore()
        self._session = session
        self._settings: Optional[UserSettings] = None

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def _snapshot(self) -> UserSettings:
        if self._settings is None:
            self._settings = self._store.load()
            LOGGER.info("Loaded AI settings (active provider=%s)", self._settings.active_provider.value)
        return self._settings

    def _commit(self, updated: UserSettings) -> None:
        self._store.save(updated)
        self._settings = updated

    def get_active_provider(self) -> ProviderId:
        return self._snapshot().active_provider

    def set_active_provider(self, identity: Union[ProviderId, str]) -> ProviderId:
        """Persist the active provider. No reachability check is made."""
        provider = coerce_provider_id(identity)
        self._commit(self._snapshot().with_active(provider))
        LOGGER.info("Active AI provider set to %s", provider.value)
        return provider

    def get_provider_settings(self, identity: Union[ProviderId, str]) -> ProviderSettings:
        return self._snapshot().provider(coerce_provider_id(identity))

    def all_provider_settings(self) -> Dict[ProviderId, ProviderSettings]:
        snapshot = self._snapshot()
        return {identity: snapshot.provider(identity) for identity in ProviderId}

    def update_provider_settings(
        self,
        identity: Union[ProviderId, str],
        **changes: Any,
    ) -> ProviderSettings:
        """Merge ``changes`` into one provider's settings and persist them.

        Only the keys given are changed; ``None`` values are ignored.

        Raises:
            ValueError: For an unknown field or a temperature outside [0, 1].
        """
        provider = coerce_provider_id(identity)
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown provider settings: {', '.join(sorted(unknown))}")

        values = {key: value for key, value in changes.items() if value is not None}
        if "temperature" in values:
            values["temperature"] = validate_temperature(values["temperature"])
        if "enabled" in values:
            values["enabled"] = bool(values["enabled"])

        snapshot = self._snapshot()
        merged = replace(snapshot.provider(provider), **values)
        self._commit(snapshot.with_provider(provider, merged))
        LOGGER.info("Updated %s settings (%s)", provider.value, ", ".join(sorted(values)) or "no changes")
        return merged

    # ------------------------------------------------------------------
    # Adapters
    # ------------------------------------------------------------------
    def get_adapter(self, identity: Union[ProviderId, str, None] = None) -> LLMProvider:
        provider = self.get_active_provider() if identity is None else identity
        try:
            adapter_cls = _ADAPTERS[ProviderId(provider)]
        except (KeyError, ValueError) as exc:
            raise ProviderConfigurationError(f"No adapter registered for provider {provider!r}") from exc
        return adapter_cls(session=self._session)

    def test_connection(self, identity: Union[ProviderId, str, None] = None) -> bool:
        """Probe a provider (the active one by default) with its stored credential."""
        provider = self.get_active_provider() if identity is None else coerce_provider_id(identity)
        adapter = self.get_adapter(provider)
        stored = self.get_provider_settings(provider)
        target = stored.endpoint if provider is ProviderId.OLLAMA else stored.api_key
        ok = adapter.test_connection(target)
        LOGGER.info("Connection test for %s: %s", provider.value, "ok" if ok else "failed")
        return ok

    def detect_local_endpoint(
        self,
        endpoint: Optional[str] = None,
        *,
        persist: bool = False,
    ) -> ProbeResult:
        """Find the first reachable local-model address, optionally storing it."""
        primary = endpoint or self.get_provider_settings(ProviderId.OLLAMA).endpoint
        adapter = self.get_adapter(ProviderId.OLLAMA)
        result = adapter.resolve_endpoint(primary)
        if persist and result.reachable and result.endpoint != primary:
            self.update_provider_settings(ProviderId.OLLAMA, endpoint=result.endpoint)
        return result

    def _effective_options(self, provider: ProviderId, options: Optional[ChatOptions]) -> ChatOptions:
        """Call-time options win over stored settings; adapters fill the rest."""
        opts = options or ChatOptions()
        stored = self.get_provider_settings(provider)
        return replace(
            opts,
            model=opts.model or stored.model,
            temperature=opts.temperature if opts.temperature is not None else stored.temperature,
            endpoint=opts.endpoint or stored.endpoint,
            api_key=opts.api_key or stored.api_key,
        )

    def resolve_options(self, options: Optional[ChatOptions] = None) -> Tuple[ProviderId, ChatOptions]:
        """Return the active provider and the options a chat call would use."""
        provider = self.get_active_provider()
        return provider, self._effective_options(provider, options)

    def chat(
        self,
        messages: Sequence[Union[Message, Mapping[str, Any]]],
        options: Optional[ChatOptions] = None,
    ) -> str:
        """Send a conversation to the active provider and return its text unchanged."""
        provider, effective = self.resolve_options(options)
        adapter = self.get_adapter(provider)
        LOGGER.debug("Dispatching chat to %s (model=%s)", provider.value, effective.model)
        return adapter.chat(messages, effective)

    def generate_summary(self, content: str) -> BriefSummary:
        """Summarize content into a brief summary plus key points."""
        if not content or not content.strip():
            return BriefSummary(summary="", key_points=[])
        messages = [
            Message("system", SUMMARY_SYSTEM_PROMPT),
            Message("user", SUMMARY_USER_PROMPT.format(content=content)),
        ]
        parsed = parse_summary_response(self.chat(messages))
        return BriefSummary(summary=parsed.summary, key_points=parsed.key_points)


_manager: Optional[ProviderManager] = None


def get_provider_manager() -> ProviderManager:
    """Get the global provider manager instance.

    Returns:
        Singleton ProviderManager instance.
    """
    global _manager
    if _manager is None:
        _manager = ProviderManager()
    return _manager
