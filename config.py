"""
Configuration management for the hub tracker.
"""

import os
import threading
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict
from pathlib import Path
import json
import logging
from jsonschema import validate, ValidationError

from hub_tracker.utils.errors import ConfigurationError


@dataclass
class TrackerConfig:
    """Tracking run settings."""
    # Maximum number of repositories tracked at the same time
    concurrency: int = 10
    # Restrict the run to these repositories / kinds (all when empty)
    repositories_names: List[str] = field(default_factory=list)
    repositories_kinds: List[str] = field(default_factory=list)
    bypass_digest_check: bool = False
    # Seconds before the whole run is cancelled (no limit if None)
    run_timeout: Optional[float] = None


@dataclass
class HTTPConfig:
    """HTTP client settings."""
    timeout: float = 30.0
    user_agent: str = "hub-tracker"
    retry_attempts: int = 3
    backoff_factor: float = 0.5
    retry_on_status: List[int] = field(default_factory=lambda: [429, 500, 502, 503, 504])


@dataclass
class GitConfig:
    """Git cloner settings."""
    clone_timeout: int = 300
    work_dir: Optional[str] = None


@dataclass
class DatabaseConfig:
    """Database configuration settings."""
    sqlite_path: str = "data/hub.db"


@dataclass
class SystemConfig:
    """Main system configuration."""
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    git: GitConfig = field(default_factory=GitConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = "INFO"
    log_file: Optional[str] = None


REPOSITORY_KIND_NAMES = [
    "helm", "falco", "opa", "olm", "tbaction", "krew", "helm_plugin",
    "tekton_task", "keda_scaler", "coredns", "keptn", "tekton_pipeline"
]

# Configuration schema for validation
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "tracker": {
            "type": "object",
            "properties": {
                "concurrency": {"type": "integer", "minimum": 1, "maximum": 1000},
                "repositories_names": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1}
                },
                "repositories_kinds": {
                    "type": "array",
                    "items": {"type": "string", "enum": REPOSITORY_KIND_NAMES}
                },
                "bypass_digest_check": {"type": "boolean"},
                "run_timeout": {"type": ["number", "null"], "exclusiveMinimum": 0}
            },
            "additionalProperties": False
        },
        "http": {
            "type": "object",
            "properties": {
                "timeout": {"type": "number", "exclusiveMinimum": 0, "maximum": 600},
                "user_agent": {"type": "string", "minLength": 1},
                "retry_attempts": {"type": "integer", "minimum": 0, "maximum": 10},
                "backoff_factor": {"type": "number", "minimum": 0, "maximum": 60},
                "retry_on_status": {
                    "type": "array",
                    "items": {"type": "integer", "minimum": 100, "maximum": 599}
                }
            },
            "additionalProperties": False
        },
        "git": {
            "type": "object",
            "properties": {
                "clone_timeout": {"type": "integer", "minimum": 1, "maximum": 3600},
                "work_dir": {"type": ["string", "null"]}
            },
            "additionalProperties": False
        },
        "database": {
            "type": "object",
            "properties": {
                "sqlite_path": {"type": "string", "minLength": 1}
            },
            "additionalProperties": False
        },
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        },
        "log_file": {"type": ["string", "null"]}
    },
    "additionalProperties": False
}

_TRUE_VALUES = ("1", "true", "yes", "on")


class ConfigManager:
    """Configuration manager with validation and environment overrides."""

    def __init__(self, config_path: str = "config.json", env_file: str = ".env"):
        self.config_path = Path(config_path)
        self.env_file = Path(env_file)
        self._config: Optional[SystemConfig] = None
        self._last_modified: Optional[float] = None
        self._lock = threading.RLock()

    def validate_config(self, config_data: Dict[str, Any]) -> None:
        """Validate configuration data against schema."""
        try:
            validate(instance=config_data, schema=CONFIG_SCHEMA)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e.message}")

    def load_config(self) -> SystemConfig:
        """Load configuration from file, then apply environment overrides."""
        with self._lock:
            if self.config_path.exists():
                current_modified = self.config_path.stat().st_mtime
                if self._config is None or current_modified != self._last_modified:
                    self._load_from_file()
                    self._last_modified = current_modified
            elif self._config is None:
                self._config = SystemConfig()
                self._override_with_env_vars()
                logging.info("Configuration loaded from environment variables")

            return self._config

    def _load_from_file(self) -> None:
        """Load configuration from JSON file with validation."""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load config from {self.config_path}",
                {"error": str(e)}
            )

        self.validate_config(config_data)
        self._config = self._dict_to_config(config_data)
        self._override_with_env_vars()

        logging.info(f"Configuration loaded and validated from {self.config_path}")

    def _load_env_file(self) -> None:
        """Load KEY=VALUE lines of the .env file into the environment."""
        if not self.env_file.exists():
            return
        try:
            with open(self.env_file, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        os.environ.setdefault(key.strip(), value.strip())
            logging.info("Loaded environment variables from .env file")
        except OSError as e:
            logging.warning(f"Failed to load .env file: {e}")

    def _override_with_env_vars(self) -> None:
        """Override configuration with environment variables."""
        self._load_env_file()

        concurrency = os.getenv("HUB_TRACKER_CONCURRENCY")
        if concurrency:
            try:
                self._config.tracker.concurrency = int(concurrency)
            except ValueError:
                raise ConfigurationError(
                    "Invalid HUB_TRACKER_CONCURRENCY value",
                    {"value": concurrency}
                )
            if self._config.tracker.concurrency < 1:
                raise ConfigurationError(
                    "HUB_TRACKER_CONCURRENCY must be at least 1",
                    {"value": concurrency}
                )

        bypass = os.getenv("HUB_TRACKER_BYPASS_DIGEST_CHECK")
        if bypass:
            self._config.tracker.bypass_digest_check = bypass.strip().lower() in _TRUE_VALUES

        if os.getenv("HUB_TRACKER_DB_PATH"):
            self._config.database.sqlite_path = os.getenv("HUB_TRACKER_DB_PATH")

        log_level = os.getenv("HUB_TRACKER_LOG_LEVEL")
        if log_level:
            self._config.log_level = log_level.upper()

    def _dict_to_config(self, data: Dict[str, Any]) -> SystemConfig:
        """Convert dictionary to SystemConfig object."""
        config = SystemConfig()

        if "tracker" in data:
            config.tracker = TrackerConfig(**data["tracker"])

        if "http" in data:
            config.http = HTTPConfig(**data["http"])

        if "git" in data:
            config.git = GitConfig(**data["git"])

        if "database" in data:
            config.database = DatabaseConfig(**data["database"])

        config.log_level = data.get("log_level", config.log_level)
        config.log_file = data.get("log_file", config.log_file)

        return config

    def export_config(self) -> Dict[str, Any]:
        """Export current configuration as dictionary."""
        with self._lock:
            if not self._config:
                return {}

            return {
                "tracker": asdict(self._config.tracker),
                "http": asdict(self._config.http),
                "git": asdict(self._config.git),
                "database": asdict(self._config.database),
                "log_level": self._config.log_level,
                "log_file": self._config.log_file
            }

    def save_config(self, config_path: Optional[str] = None) -> None:
        """Save current configuration to file."""
        with self._lock:
            if not self._config:
                raise ConfigurationError("No configuration loaded to save")

            save_path = Path(config_path) if config_path else self.config_path
            config_dict = self.export_config()

            # Validate before saving
            self.validate_config(config_dict)

            with open(save_path, 'w', encoding='utf-8') as f:
                json.dump(config_dict, f, indent=2, ensure_ascii=False)

            logging.info(f"Configuration saved to {save_path}")


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> SystemConfig:
    """Get the current system configuration."""
    return config_manager.load_config()


def reload_config() -> SystemConfig:
    """Force reload configuration and return updated config."""
    config_manager._config = None
    config_manager._last_modified = None
    return config_manager.load_config()
