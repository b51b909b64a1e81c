"""Configuration service: loads, saves, and provides access to AppConfig."""
from __future__ import annotations

import json
import logging
import os
from typing import Optional

from pydantic import ValidationError

from iptvcatalog.models.config import AppConfig, Options

logger = logging.getLogger(__name__)


class ConfigService:
    """Manages application configuration with file persistence.

    The config is kept in-memory after first load and re-read on explicit
    ``load()`` calls. Routes depend on this service rather than reading the
    JSON directly.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.config_file = os.path.join(data_dir, "config.json")
        self._config: dict = self._default_config()

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    @staticmethod
    def _default_config() -> dict:
        return AppConfig().model_dump()

    # ------------------------------------------------------------------
    # Load / Save
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load configuration from disk, applying defaults."""
        default = self._default_config()

        if os.path.exists(self.config_file):
            try:
                with open(self.config_file) as f:
                    config = json.load(f)

                for key in default:
                    if key not in config:
                        config[key] = default[key]
                options = dict(default["options"])
                options.update(config.get("options") or {})
                config["options"] = Options.model_validate(options).model_dump()

                self._config = config
                return self._config

            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Error loading config: {e}")

        self._config = default
        return self._config

    def save(self, config: dict | None = None) -> None:
        """Persist the config to disk."""
        if config is not None:
            self._config = config
        os.makedirs(os.path.dirname(self.config_file), exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self._config, f, indent=2)

    @property
    def config(self) -> dict:
        return self._config

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    def get_options(self) -> Options:
        return Options.model_validate(self._config.get("options", {}))

    options = property(get_options)

    def update_options(self, changes: dict) -> Options:
        """Merge *changes* into the options, validate and persist them."""
        merged = dict(self._config.get("options", {}))
        merged.update(changes)
        options = Options.model_validate(merged)
        self._config["options"] = options.model_dump()
        self.save()
        return options

    def get_secure_context_override(self) -> Optional[bool]:
        return self.get_options().secure_context
