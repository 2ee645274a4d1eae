"""Settings service: explicit load/save access to the app-settings.json record."""

import json
import threading
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from shared.errors import ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.file_io import read_json, write_json_atomic
from shared.models.settings import Settings

SETTINGS_FILE_NAME = "app-settings.json"

# env fallback for stored credentials, per provider
_PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class HelperSettings:
    """Loads and persists the process-wide Settings record.

    Passed by reference to every component that needs settings instead of
    letting components read the file themselves. Writes are read-merge-write
    under a process-local lock; across processes the last writer wins.
    """

    def __init__(self, helper_config: HelperConfig, settings_path: Path | None = None) -> None:
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._path = settings_path or helper_config.get_files_root() / SETTINGS_FILE_NAME
        self._lock = threading.Lock()

    ##########################################
    ################ LOAD ####################
    ##########################################

    def load(self) -> Settings:
        """Read the settings record, materializing and persisting defaults on first read.

        An unreadable or invalid file is replaced by the defaults.

        Returns:
            Settings: The current settings.
        """
        with self._lock:
            return self._load_locked()

    def _load_locked(self) -> Settings:
        try:
            raw = read_json(self._path)
        except (OSError, json.JSONDecodeError) as exc:
            self.logging.error("Error reading settings file %s: %s. Resetting to defaults.", self._path, exc)
            raw = None

        if raw is not None:
            try:
                return Settings.model_validate(raw)
            except PydanticValidationError as exc:
                self.logging.error("Invalid settings file %s: %s. Resetting to defaults.", self._path, exc)

        settings = Settings()
        write_json_atomic(self._path, settings.to_file_dict())
        self.logging.info("Initialised settings file with defaults at %s", self._path)
        return settings

    ##########################################
    ################ SAVE ####################
    ##########################################

    def save(self, updates: dict) -> Settings:
        """Merge a full settings update into the stored record (provider and model required).

        Args:
            updates (dict): Settings keys as stored in the file (e.g. "llm_provider").

        Returns:
            Settings: The merged settings.

        Raises:
            ValidationError: If provider or model are missing, or a value has the wrong type.
        """
        if not updates.get("llm_provider") or not updates.get("llm_model"):
            raise ValidationError("Provider and model are required")
        return self.update(updates)

    def update(self, updates: dict) -> Settings:
        """Merge a partial settings update into the stored record.

        Raises:
            ValidationError: If a merged value has the wrong type.
        """
        with self._lock:
            current = self._load_locked().to_file_dict()
            merged = {**current, **updates}
            try:
                settings = Settings.model_validate(merged)
            except PydanticValidationError as exc:
                raise ValidationError("Invalid settings", detail=str(exc))
            write_json_atomic(self._path, settings.to_file_dict())
        self.logging.info(
            "Settings saved: provider=%s model=%s vector_store=%s",
            settings.provider, settings.model, settings.vector_store_kind,
        )
        return settings

    ##########################################
    ############## CREDENTIALS ###############
    ##########################################

    def resolve_api_key(self, provider: str, override: str | None = None, settings: Settings | None = None) -> str | None:
        """Resolve the credential for an LLM provider.

        Priority: explicit request override, stored settings key (only when it
        belongs to ``provider``), then the provider's environment variable.

        Returns:
            str | None: The key, or None when nothing is configured.
        """
        if override:
            return override
        settings = settings or self.load()
        if settings.api_key and settings.provider.lower() == provider.lower():
            return settings.api_key
        env_key = _PROVIDER_KEY_ENV.get(provider.lower())
        return self._helper_config.get_optional_string_val(env_key) if env_key else None

    def resolve_embedding_key(self, override: str | None = None, settings: Settings | None = None) -> str | None:
        """Resolve the credential for the embedding provider (always OpenAI-compatible)."""
        return self.resolve_api_key("openai", override=override, settings=settings)
