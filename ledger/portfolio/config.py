"""
Config Store

Holds the PortfolioConfig. Updates are validated against the merged
result, so a bad update leaves the current config untouched.
"""
from typing import Any, Optional
from loguru import logger
from pydantic import ValidationError

from ..models import PortfolioConfig


class ConfigStore:
    """Named portfolio parameters"""

    def __init__(self, config: Optional[PortfolioConfig] = None):
        self._config = config or PortfolioConfig()

    def get_config(self) -> PortfolioConfig:
        return self._config.model_copy(deep=True)

    def update_config(self, **updates: Any) -> Optional[PortfolioConfig]:
        """
        Merge updates into the config

        Keys may be snake_case or the camelCase document names.

        Returns:
            The new config, or None if the merged config is invalid
        """
        fields = PortfolioConfig.model_fields
        aliases = {field.alias: name for name, field in fields.items() if field.alias}
        normalized = {aliases.get(key, key): value for key, value in updates.items()}

        unknown = sorted(set(normalized) - set(fields))
        if unknown:
            logger.warning(f"Rejected config update: unknown keys {unknown}")
            return None

        merged = {**self._config.model_dump(), **normalized}

        try:
            config = PortfolioConfig.model_validate(merged)
        except ValidationError as e:
            logger.warning(f"Rejected config update {updates}: {e.error_count()} validation error(s)")
            return None

        self._config = config
        logger.info(f"Config updated: {', '.join(sorted(updates))}")

        return config.model_copy(deep=True)

    def restore(self, config: PortfolioConfig) -> None:
        self._config = config.model_copy(deep=True)
