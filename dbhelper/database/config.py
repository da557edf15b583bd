"""
Database configuration and engine management
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.pool import StaticPool
from pydantic import BaseModel, Field, field_validator
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


ENGINE_ALIASES = {
    'mysql': 'mysql',
    'mariadb': 'mysql',
    'postgresql': 'postgresql',
    'postgres': 'postgresql',
    'pgsql': 'postgresql',
    'sqlite': 'sqlite',
}

SUPPORTED_ENGINES = ['mysql', 'postgresql', 'sqlite']

DRIVER_NAMES = {
    'mysql': 'mysql+pymysql',
    'postgresql': 'postgresql+psycopg2',
    'sqlite': 'sqlite',
}


class ConnectionSettings(BaseModel):
    """Everything needed to open one database connection."""

    database_name: str = Field(..., min_length=1)
    user: str = ''
    password: str = Field(default='', repr=False)
    engine: str = 'mysql'
    charset: str = 'utf8'
    host: str = '127.0.0.1'
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    engine_args: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('engine')
    @classmethod
    def validate_engine(cls, v: str) -> str:
        """Normalise engine name and resolve aliases."""
        engine = ENGINE_ALIASES.get(v.strip().lower())
        if engine is None:
            raise ValueError(f"Unsupported database engine: {v}")
        return engine

    @field_validator('charset')
    @classmethod
    def validate_charset(cls, v: str) -> str:
        """Charset names end up in the connection URL."""
        if not v.replace('_', '').isalnum():
            raise ValueError(f"Invalid charset: {v}")
        return v


class DatabaseConfig:
    """Configuration manager for database connections"""

    @staticmethod
    def get_dsn(settings: ConnectionSettings) -> str:
        """
        Build the short connection descriptor used in logs

        Args:
            settings: Connection settings

        Returns:
            ``<engine>:dbname=<db>;host=<host>;charset=<charset>``
        """
        return (f"{settings.engine}:dbname={settings.database_name};"
                f"host={settings.host};charset={settings.charset}")

    @staticmethod
    def get_url(settings: ConnectionSettings) -> URL:
        """
        Build the SQLAlchemy URL for the settings

        Args:
            settings: Connection settings

        Returns:
            SQLAlchemy URL object (password is masked when rendered)
        """
        driver = DRIVER_NAMES[settings.engine]

        if settings.engine == 'sqlite':
            return URL.create(driver, database=settings.database_name)

        if settings.engine == 'mysql':
            query = {'charset': settings.charset}
        else:
            query = {'client_encoding': settings.charset}

        return URL.create(
            driver,
            username=settings.user or None,
            password=settings.password or None,
            host=settings.host,
            port=settings.port,
            database=settings.database_name,
            query=query,
        )

    @staticmethod
    def get_engine(settings: ConnectionSettings) -> Engine:
        """
        Create SQLAlchemy engine holding a single connection

        Args:
            settings: Connection settings

        Returns:
            SQLAlchemy Engine instance
        """
        url = DatabaseConfig.get_url(settings)
        engine_args = dict(settings.engine_args)

        # One connection per wrapper; no pooling beyond that
        if settings.engine == 'sqlite':
            engine_args.setdefault('poolclass', StaticPool)
            engine_args.setdefault('connect_args', {'check_same_thread': False})
        else:
            engine_args.setdefault('pool_size', 1)
            engine_args.setdefault('max_overflow', 0)
            engine_args.setdefault('pool_pre_ping', True)
        engine_args.setdefault('echo', False)

        logger.info(f"Creating {settings.engine} engine: {url.render_as_string(hide_password=True)}")
        return create_engine(url, **engine_args)

    @staticmethod
    def get_default_config(engine: str, database_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Get default configuration for a database engine

        Args:
            engine: Database engine name
            database_name: Optional database name (or file path for SQLite)

        Returns:
            Default configuration dictionary
        """
        resolved = ENGINE_ALIASES.get(engine.lower())
        if resolved == 'sqlite':
            return {
                'engine': 'sqlite',
                'database_name': database_name or ':memory:',
                'engine_args': {'echo': False},
            }
        elif resolved == 'mysql':
            return {
                'engine': 'mysql',
                'database_name': database_name or 'test',
                'user': 'root',
                'password': '',
                'host': '127.0.0.1',
                'port': 3306,
                'charset': 'utf8',
                'engine_args': {'echo': False},
            }
        elif resolved == 'postgresql':
            return {
                'engine': 'postgresql',
                'database_name': database_name or 'postgres',
                'user': 'postgres',
                'password': '',
                'host': '127.0.0.1',
                'port': 5432,
                'charset': 'utf8',
                'engine_args': {'echo': False},
            }
        else:
            raise ValueError(f"Unsupported database engine: {engine}")
