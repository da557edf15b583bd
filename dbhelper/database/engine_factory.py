"""
Database factory for creating connected ``Database`` instances from configuration
"""

from typing import Dict, Any
import logging

from pydantic import ValidationError

from .config import ConnectionSettings, SUPPORTED_ENGINES
from .connection import Database

logger = logging.getLogger(__name__)


class DatabaseFactory:
    """Factory for creating database wrappers from settings or plain dictionaries"""

    @staticmethod
    def create_database(settings: ConnectionSettings) -> Database:
        """
        Create a connected database wrapper

        Args:
            settings: Validated connection settings

        Returns:
            Database instance
        """
        database = Database.from_settings(settings)
        logger.info(f"Created {settings.engine} database wrapper for '{settings.database_name}'")
        return database

    @staticmethod
    def create_from_config(config: Dict[str, Any]) -> Database:
        """
        Create a database wrapper from a configuration dictionary

        Args:
            config: Configuration with at least 'engine' and 'database_name'
                keys, e.g. the output of ``DatabaseConfig.get_default_config``

        Returns:
            Database instance

        Raises:
            ValueError: If the configuration is incomplete or invalid
        """
        if not config.get('engine'):
            raise ValueError("Configuration must include 'engine'")
        if not config.get('database_name'):
            raise ValueError("Configuration must include 'database_name'")

        try:
            settings = ConnectionSettings(**config)
        except ValidationError as e:
            raise ValueError(f"Invalid database configuration: {e}") from e

        return DatabaseFactory.create_database(settings)

    @staticmethod
    def get_supported_engines() -> list:
        """
        Get list of supported database engines

        Returns:
            List of supported engine names
        """
        return list(SUPPORTED_ENGINES)
