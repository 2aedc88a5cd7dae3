"""YAML configuration loader and dictation settings for Dictate2Me."""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, List, Literal, Optional

from pubsub import pub
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..models.events import TOPIC_SETTINGS_CHANGED, SettingsChangedEvent
from ..rules.commands import DEFAULT_FORMATTING_COMMANDS

logger = logging.getLogger(__name__)

DEFAULT_AUTO_REPLACE_RULES = """question mark : ?
exclamation mark : !
full stop : .
comma : ,
semicolon : ;
colon : :
dash : -
open bracket : (
close bracket : )
new line : \\n"""


class Dictate2MeConfig:
    """Dictate2Me configuration loader."""

    def __init__(self, config_path: str):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file
        """
        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not config:
            raise ValueError("Configuration file is empty")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        if 'google_cloud' in config and 'credentials_path' in config['google_cloud']:
            creds_path = config['google_cloud']['credentials_path']
            if creds_path and not os.path.isabs(creds_path):
                config['google_cloud']['credentials_path'] = str(config_dir / creds_path)

        if 'logging' in config and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'dictation.dictation_lang').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def save(self) -> None:
        """Write the configuration back to its YAML file."""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.config, f, allow_unicode=True, sort_keys=False)
        logger.info(f"Configuration saved to: {self.config_file}")

    def get_google_credentials_path(self) -> str:
        """Get Google credentials path - fails if not configured or missing."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            raise ValueError("Google credentials path not configured in dictate2me.yaml")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())


class FormattingCommandEntry(BaseModel):
    """Configured formatting command entry."""
    phrase: str
    action: Literal["delete_last_word", "clear_all", "insert_literal"]
    literal: str = ""


class DictationSettings(BaseModel):
    """Settings provided by the configuration collaborator."""
    dictation_active: bool = True
    dictation_lang: str = "en-US"
    translation_active: bool = False
    translation_lang: str = "en"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash-latest"
    custom_gemini_model: str = ""
    auto_replace_rules: str = DEFAULT_AUTO_REPLACE_RULES
    blacklist_sites: str = ""
    interim_results_enabled: bool = True
    disable_auto_punctuation: bool = False
    formatting_commands: List[FormattingCommandEntry] = Field(
        default_factory=lambda: [FormattingCommandEntry(**entry) for entry in DEFAULT_FORMATTING_COMMANDS]
    )
    recognition_timeout_seconds: float = 30.0
    restart_delay_ms: int = 50
    focus_debounce_ms: int = 50
    reposition_debounce_ms: int = 150
    indicator_sticky_seconds: float = 3.0
    trailing_separator: str = " "

    @field_validator("recognition_timeout_seconds", "indicator_sticky_seconds")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("restart_delay_ms", "focus_debounce_ms", "reposition_debounce_ms")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def effective_gemini_model(self) -> str:
        if self.gemini_model == "custom" and self.custom_gemini_model:
            return self.custom_gemini_model
        return self.gemini_model

    @property
    def translation_configured(self) -> bool:
        return self.translation_active and bool(self.gemini_api_key)


class SettingsStore:
    """Holds current dictation settings and broadcasts changes."""

    def __init__(self,
                 settings: Optional[DictationSettings] = None,
                 config: Optional[Dictate2MeConfig] = None):
        """Initialize settings store.

        Args:
            settings: Initial settings (defaults if None)
            config: File-backed configuration used to persist writes
        """
        self._settings = settings or DictationSettings()
        self.config = config

    @classmethod
    def from_config(cls, config: Dictate2MeConfig) -> 'SettingsStore':
        """Build a store from the 'dictation' section of a config file."""
        try:
            settings = DictationSettings(**(config.get('dictation', {}) or {}))
        except ValidationError as e:
            raise ValueError(f"Invalid dictation settings: {e}")
        return cls(settings, config)

    @property
    def settings(self) -> DictationSettings:
        return self._settings

    def update(self, **changes: Any) -> Dict[str, Any]:
        """Apply a partial update and publish the keys that changed.

        Returns:
            Mapping of changed keys to their new values
        """
        current = self._settings.model_dump()
        try:
            updated = DictationSettings(**{**current, **changes})
        except ValidationError as e:
            raise ValueError(f"Invalid dictation settings: {e}")

        new_values = updated.model_dump()
        changed = {key: new_values[key] for key in changes if current.get(key) != new_values.get(key)}
        self._settings = updated
        if not changed:
            return changed

        logger.info(f"Settings changed: {sorted(changed)}")
        pub.sendMessage(TOPIC_SETTINGS_CHANGED, event=SettingsChangedEvent(changes=changed))
        return changed

    def set_dictation_active(self, active: bool) -> None:
        """Write path used to force-disable dictation."""
        self.update(dictation_active=active)
        if self.config is not None:
            self.config.set('dictation.dictation_active', active)
            try:
                self.config.save()
            except OSError as e:
                logger.error(f"Failed to persist dictation_active={active}: {e}")
