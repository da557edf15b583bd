"""YAML configuration for dbhelper connections.

A configuration file has two sections::

    database:
      engine: mysql
      database_name: shop
      user: app
      password: secret
    logging:
      level: INFO
      file: logs/db.log

The ``database`` section is validated by ``ConnectionSettings`` and may be
overridden per field through ``DBHELPER_DB_*`` environment variables, so
credentials can stay out of the file. The ``logging`` section feeds
``setup_db_logging`` and is checked with a JSON schema.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Union
from jsonschema import validate, ValidationError
from pydantic import ValidationError as SettingsValidationError

from .security import setup_secure_logging
from .database.config import ConnectionSettings
from .database.connection import Database
from .database.engine_factory import DatabaseFactory
from .database.logging_config import setup_db_logging

logger = setup_secure_logging(__name__)


LOGGING_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "file": {"type": "string"}
    },
    "additionalProperties": False
}

REDACTED = '***REDACTED***'


class DatabaseConfigManager:
    """Builds connection settings and logging options from a YAML file."""

    # Environment variable -> ConnectionSettings field
    ENV_OVERRIDES = {
        'DBHELPER_DB_NAME': 'database_name',
        'DBHELPER_DB_USER': 'user',
        'DBHELPER_DB_PASSWORD': 'password',
        'DBHELPER_DB_HOST': 'host',
        'DBHELPER_DB_PORT': 'port',
    }

    def __init__(self, config_path: Union[str, Path]):
        """Load the configuration file.

        Args:
            config_path: Path to the YAML file

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file or one of its sections is not a mapping
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(self.config_path, 'r') as f:
            raw = yaml.safe_load(f)

        if not isinstance(raw, dict):
            raise ValueError(f"Config file must contain a dictionary, got {type(raw).__name__}")

        self.has_database_section = 'database' in raw
        self.database_section = self._section(raw, 'database')
        self.logging_section = self._section(raw, 'logging')

    @staticmethod
    def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Section '{name}' must be a dictionary")
        return dict(section)

    def database_options(self) -> Dict[str, Any]:
        """The ``database`` section with environment overrides applied."""
        options = dict(self.database_section)
        for env_var, field_name in self.ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                options[field_name] = value
                logger.info(f"Using {env_var} for database.{field_name}")
        return options

    def get_connection_settings(self) -> ConnectionSettings:
        """Validate the ``database`` section into connection settings.

        Raises:
            KeyError: If the file has no ``database`` section
            pydantic.ValidationError: If the section is invalid
        """
        if not self.has_database_section:
            raise KeyError(f"No 'database' section in {self.config_path}")

        try:
            return ConnectionSettings(**self.database_options())
        except SettingsValidationError as e:
            logger.error(f"Invalid database section in {self.config_path}: {e.error_count()} error(s)")
            raise

    def get_logging_config(self) -> Dict[str, Any]:
        """The ``logging`` section in the shape ``setup_db_logging`` reads."""
        return {'logging': dict(self.logging_section)}

    def validate(self) -> ConnectionSettings:
        """Validate both sections.

        Returns:
            The validated connection settings

        Raises:
            jsonschema.ValidationError: If the ``logging`` section is invalid
            pydantic.ValidationError: If the ``database`` section is invalid
            KeyError: If there is no ``database`` section
        """
        try:
            validate(self.logging_section, LOGGING_SCHEMA)
        except ValidationError as e:
            logger.error(f"Invalid logging section: {e.message}")
            raise

        return self.get_connection_settings()

    def get_config(self, redact_secrets: bool = True) -> Dict[str, Any]:
        """Effective configuration after environment overrides.

        Args:
            redact_secrets: Replace the password with a placeholder
        """
        database = self.database_options()
        if redact_secrets and database.get('password'):
            database['password'] = REDACTED
        return {'database': database, 'logging': dict(self.logging_section)}

    def create_database(self) -> Database:
        """Configure the ``db`` logger and open a connection."""
        settings = self.validate()
        setup_db_logging(self.get_logging_config())
        return DatabaseFactory.create_database(settings)


def load_database_config(config_path: Union[str, Path],
                         validate_schema: bool = True) -> Dict[str, Any]:
    """Load a configuration file with environment overrides applied.

    Args:
        config_path: Path to the YAML file
        validate_schema: Validate both sections before returning

    Returns:
        Configuration dictionary with the password in clear
    """
    manager = DatabaseConfigManager(config_path)

    if validate_schema:
        manager.validate()

    return manager.get_config(redact_secrets=False)
