"""
Configuration Manager - Handle backend settings persistence
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .process_runner import DEFAULT_MAX_OUTPUT_BYTES

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "CODE_REVIEW_CONFIG_DIR"


class ConfigManager:
    """Manage configuration persistence"""

    _instance = None
    _config_file = None

    def __init__(self):
        # Environment variable first, then the home directory
        config_dir = os.environ.get(CONFIG_DIR_ENV) or os.path.expanduser("~/.code_review_backend")

        config_path = Path(config_dir)
        try:
            config_path.mkdir(parents=True, exist_ok=True)
            self._config_file = config_path / "config.json"
        except OSError as e:
            logger.warning("[ConfigManager] Cannot write to %s: %s", config_dir, e)
            self._config_file = None

        # Fall back to the temp directory when the preferred path is unusable
        if not self._config_file:
            tmp_dir = Path(tempfile.gettempdir()) / "code_review_backend"
            tmp_dir.mkdir(parents=True, exist_ok=True)
            self._config_file = tmp_dir / "config.json"
            logger.warning("[ConfigManager] Using temporary config path: %s", self._config_file)

        self._config = self._load_config()

    @classmethod
    def get_instance(cls) -> "ConfigManager":
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigManager()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    @property
    def config_file(self) -> Path:
        return self._config_file

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file, filling in missing defaults"""
        if not self._config_file.exists():
            return self._default_config()

        try:
            with open(self._config_file, encoding="utf-8") as f:
                stored = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("[ConfigManager] Error loading config: %s", e)
            return self._default_config()

        return merge_config(self._default_config(), stored)

    def _default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "provider": "gemini",
            "gemini": {"apiKey": "", "model": "gemini-2.5-flash"},
            "vllm": {
                "endpoint": "http://localhost:8000",
                "apiKey": "",
                "model": "meta-llama/Llama-2-7b-chat-hf",
            },
            "openai": {"apiKey": "", "model": "gpt-4"},
            "git": {
                "executable": "git",
                "remote": "origin",
                "maxOutputBytes": DEFAULT_MAX_OUTPUT_BYTES,
            },
            "server": {"host": "127.0.0.1", "port": 8000},
        }

    def get_config(self) -> dict[str, Any]:
        """Get current configuration"""
        # Reload config from file to ensure we have the latest
        self._config = self._load_config()
        return copy.deepcopy(self._config)

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self._config = merge_config(self._config, config)

        self._config_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._config_file, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}") from e

    def get(self, key: str, default=None):
        """Get specific config value"""
        return self._config.get(key, default)

    def set(self, key: str, value: Any):
        """Set specific config value"""
        self.save_config({key: value})


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge `override` into a copy of `base`, one level deep for sections"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged
