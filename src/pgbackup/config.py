"""
Backup configuration: connection parameters and what to dump.
"""
import configparser
import os
from dataclasses import dataclass, field
from typing import Dict, List

from .errors import ConfigError

DATABASE_KEYS = ('dbname', 'user', 'password', 'host', 'port')

# Namespaces never backed up
SYSTEM_SCHEMA_PREFIX = 'pg_'
SYSTEM_SCHEMAS = ('information_schema',)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"

# First server version exposing sequence metadata in pg_sequence
PG_SEQUENCE_CATALOG_VERSION = 100000


@dataclass
class BackupConfig:
    """Connection parameters plus backup selection."""
    database: Dict[str, str]
    schemas: List[str] = field(default_factory=list)
    data_patterns: List[str] = field(default_factory=list)
    caching: bool = True


def is_system_schema(name: str) -> bool:
    return name.startswith(SYSTEM_SCHEMA_PREFIX) or name in SYSTEM_SCHEMAS


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def load_config(config_path: str) -> BackupConfig:
    """Load backup configuration from an INI file.

    Args:
        config_path: Path to the configuration file

    Returns:
        BackupConfig built from the [database] and [backup] sections
    """
    if not os.path.exists(config_path):
        raise ConfigError(f"config file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)

    if not parser.has_section('database'):
        raise ConfigError(f"{config_path}: missing [database] section")
    missing = [key for key in DATABASE_KEYS if key not in parser['database']]
    if missing:
        raise ConfigError(f"{config_path}: missing database keys: {', '.join(missing)}")

    database = {key: parser['database'][key] for key in DATABASE_KEYS}

    if not parser.has_section('backup'):
        return BackupConfig(database=database)

    section = parser['backup']
    try:
        caching = section.getboolean('caching', fallback=True)
    except ValueError as e:
        raise ConfigError(f"{config_path}: bad 'caching' value: {e}") from e

    return BackupConfig(
        database=database,
        schemas=_split_list(section.get('schemas', '')),
        data_patterns=_split_list(section.get('data', '')),
        caching=caching,
    )
