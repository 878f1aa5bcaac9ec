"""Configuration management for the portfolio recommendation engine."""

import copy
import logging
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Centralized configuration manager."""

    def __init__(self, config_path: str = "config/config.yaml"):
        """Initialize configuration from YAML file."""
        config_file = Path(config_path)
        if not config_file.is_absolute():
            config_file = Path(__file__).parent.parent / config_path

        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")

        with open(config_file, 'r') as f:
            self.config = yaml.safe_load(f) or {}

        # Replace environment variable placeholders
        self._substitute_env_vars(self.config)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build a configuration from an in-memory mapping (no file access)."""
        config = cls.__new__(cls)
        config.config = copy.deepcopy(data)
        config._substitute_env_vars(config.config)
        return config

    def _substitute_env_vars(self, obj: Any) -> None:
        """Recursively substitute environment variables in config."""
        if isinstance(obj, dict):
            for key, value in obj.items():
                if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                    env_var = value[2:-1]
                    obj[key] = os.getenv(env_var, value)
                else:
                    self._substitute_env_vars(value)
        elif isinstance(obj, list):
            for item in obj:
                self._substitute_env_vars(item)

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Example: config.get('marginal.risk_free_rate')
        """
        keys = path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        return value

    @property
    def market_data_provider(self) -> str:
        """Get market data provider name."""
        return self.get('data_sources.market_data.provider', 'mock')

    @property
    def universe(self) -> list:
        """Get the candidate universe (ordered tickers)."""
        return [str(t).strip().upper() for t in self.get('universe', [])]

    @property
    def scorer_type(self) -> str:
        """Get scorer implementation name."""
        return self.get('models.scorer.type', 'lightgbm')

    @property
    def log_level(self) -> str:
        """Get logging level name."""
        return str(self.get('logging.level', 'INFO')).upper()


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global config instance (None resets to the YAML file)."""
    global _config
    _config = config


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from the `logging.level` setting."""
    level_name = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
