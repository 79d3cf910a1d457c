"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping

if TYPE_CHECKING:
    from ..ai.client import ClientSettings
    from ..ai.orchestration.orchestrator import OrchestratorConfig

__all__ = [
    "Settings",
    "SettingsStore",
    "redact_secret",
    "DEFAULT_SETTINGS_PATH",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".inkloop"
DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "INKLOOP_API_KEY": "api_key",
    "INKLOOP_BASE_URL": "base_url",
    "INKLOOP_MODEL": "model",
    "INKLOOP_ORGANIZATION": "organization",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "INKLOOP_DEBUG_LOGGING": "debug_logging",
    "INKLOOP_DEBUG_EVENT_LOGGING": "debug_event_logging",
    "INKLOOP_STREAM_RESPONSES": "stream_responses",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKLOOP_REQUEST_TIMEOUT": "request_timeout",
    "INKLOOP_TEMPERATURE": "temperature",
    "INKLOOP_ITERATION_TIMEOUT": "iteration_timeout",
    "INKLOOP_TOTAL_TIMEOUT": "total_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKLOOP_MAX_ITERATIONS": "max_iterations",
    "INKLOOP_CHECKPOINT_LIMIT": "checkpoint_limit",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    # API connection
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    organization: str | None = None
    temperature: float = 0.4
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)

    # Orchestration
    max_iterations: int = 12
    iteration_timeout: float = 240.0
    total_timeout: float = 900.0
    checkpoint_limit: int = 5
    enable_checkpoints: bool = True
    early_termination: bool = True
    token_budget: int = 200_000
    intent_threshold: float = 0.6
    stream_responses: bool = True
    circuit_failure_threshold: int = 3
    circuit_reset_seconds: float = 60.0

    # Diagnostics
    debug_logging: bool = False
    debug_event_logging: bool = False

    def orchestrator_config(self) -> OrchestratorConfig:
        from ..ai.orchestration.orchestrator import OrchestratorConfig

        return OrchestratorConfig(
            max_iterations=self.max_iterations,
            iteration_timeout=self.iteration_timeout,
            total_timeout=self.total_timeout,
            enable_checkpoints=self.enable_checkpoints,
            checkpoint_limit=self.checkpoint_limit,
            early_termination=self.early_termination,
            token_budget=self.token_budget,
            intent_threshold=self.intent_threshold,
            model=self.model,
            temperature=self.temperature,
            stream_responses=self.stream_responses,
        )

    def client_settings(self) -> ClientSettings:
        from ..ai.client import ClientSettings

        return ClientSettings(
            base_url=self.base_url,
            api_key=self.api_key,
            model=self.model,
            organization=self.organization,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_min_seconds=self.retry_min_seconds,
            retry_max_seconds=self.retry_max_seconds,
            default_headers=dict(self.default_headers) or None,
            metadata=dict(self.metadata) or None,
            debug_logging=self.debug_logging,
        )


class SettingsStore:
    """Persistence adapter for :class:`Settings`.

    The API key is never written to disk; supply it through
    ``INKLOOP_API_KEY`` or a CLI override.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path else DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI then environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            if payload.pop("api_key", None):
                LOGGER.warning("Ignoring api_key stored in %s; use INKLOOP_API_KEY instead", self._path)
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with an atomic file write."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        data.pop("api_key", None)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)} - {"api_key"}
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        if key == "version":
            continue
        if key not in allowed:
            LOGGER.warning("Ignoring unknown settings key %r", key)
            continue
        result[key] = value
    return result


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
