import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schemas", "log_record.json")


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "server": {
            "host": "0.0.0.0",
            "port": 5000,
            "debug": False,
            "cors_origin": "http://localhost:3000",
        },
        "storage": {
            "data_file": "data/logs.json",
            "max_logs": 1000,
        },
        "broadcast": {
            "subscriber_queue_size": 100,
            "poll_interval_seconds": 1.0,
        },
        "logging": {
            "level": "INFO",
        },
        "schema": {
            "path": SCHEMA_PATH,
        },
    }

    def __init__(self, config_path=None, overrides=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                pass
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

        if overrides:
            self._config = self._deep_merge(self._config, overrides)

    @classmethod
    def from_env(cls):
        """Load from ``CONFIG_PATH`` and apply ``PORT`` / ``LOG_LEVEL`` overrides."""
        overrides = {}
        if os.environ.get("PORT"):
            overrides["server"] = {"port": int(os.environ["PORT"])}
        if os.environ.get("LOG_LEVEL"):
            overrides["logging"] = {"level": os.environ["LOG_LEVEL"].upper()}
        return cls(os.environ.get("CONFIG_PATH", "config.yaml"), overrides=overrides)

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def get(self, key, default=None):
        """Get a top-level config key."""
        return self._config.get(key, default)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
