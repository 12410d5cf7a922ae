"""Configuration loading.

Settings come from defaults, an optional YAML file and the environment
(a .env file in the working directory is honoured), later sources
overriding earlier ones.

Typical usage example:

    config = load_config(Path('library.yaml'))
    store = DocumentStore.connect(config.mongodb_uri, config.database_name)
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv

from grantha_library.exceptions import ValidationError
from grantha_library.search import DEFAULT_LIMITS

CONFIG_PATH_VARIABLE = 'GRANTHA_LIBRARY_CONFIG'

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

# Environment variable -> config field.
_ENVIRONMENT_KEYS = {
    'MONGODB_URI': 'mongodb_uri',
    'GRANTHA_DB_NAME': 'database_name',
    'HOST': 'host',
    'PORT': 'port',
    'LOG_LEVEL': 'log_level',
    'CORS_ORIGINS': 'cors_origins',
}

_INT_FIELDS = ('page_size', 'max_page_size', 'max_upload_bytes',
               'min_search_length', 'port')


@dataclass
class LibraryConfig:
    """Runtime settings of the library service.

    Attributes:
        mongodb_uri: MongoDB connection string.
        database_name: Database holding the library collections.
        page_size: Default page size of grantha listings.
        max_page_size: Largest page size a client may request.
        max_upload_bytes: Size limit of an uploaded import file.
        search_limits: Maximum search results per category.
        min_search_length: Shortest query that is searched.
        cors_origins: Allowed CORS origins ("*" or a list).
        log_level: Root logging level name.
        host: Interface the development server binds to.
        port: Port the development server listens on.
    """

    mongodb_uri: str = 'mongodb://localhost:27017'
    database_name: str = 'sanskrit_library'
    page_size: int = 10
    max_page_size: int = 100
    max_upload_bytes: int = 50 * 1024 * 1024
    search_limits: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_LIMITS)
    )
    min_search_length: int = 2
    cors_origins: Union[str, List[str]] = '*'
    log_level: str = 'INFO'
    host: str = '0.0.0.0'
    port: int = 5000


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None
) -> LibraryConfig:
    """Loads configuration.

    Args:
        path: YAML file. Defaults to $GRANTHA_LIBRARY_CONFIG, if set.
        environ: Environment mapping. Defaults to os.environ after loading
            a .env file.

    Returns:
        LibraryConfig instance.

    Raises:
        ValidationError: If the file holds unknown keys or bad values.
        FileNotFoundError: If path does not exist.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    values: Dict[str, Any] = {}
    if path is None and environ.get(CONFIG_PATH_VARIABLE):
        path = Path(environ[CONFIG_PATH_VARIABLE])
    if path is not None:
        values.update(_read_yaml(path))
    values.update(_environment_values(environ))
    return _build_config(values)


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Reads a YAML mapping of config values."""
    with path.open('r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(f"Config file {path} must contain a mapping")
    return data


def _environment_values(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Extracts config values from environment variables."""
    values: Dict[str, Any] = {}
    for variable, name in _ENVIRONMENT_KEYS.items():
        if environ.get(variable):
            values[name] = environ[variable]
    origins = values.get('cors_origins')
    if origins and origins != '*':
        values['cors_origins'] = [o.strip() for o in origins.split(',') if o.strip()]
    return values


def _build_config(values: Dict[str, Any]) -> LibraryConfig:
    """Validates raw values and builds the config object."""
    known = {f.name for f in fields(LibraryConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValidationError(f"Unknown config keys: {', '.join(unknown)}")

    for name in _INT_FIELDS:
        if name in values:
            values[name] = _to_int(name, values[name])
    if 'search_limits' in values:
        limits = values['search_limits']
        if not isinstance(limits, dict):
            raise ValidationError('search_limits must be a mapping')
        values['search_limits'] = {
            **DEFAULT_LIMITS,
            **{k: _to_int(f"search_limits.{k}", v) for k, v in limits.items()},
        }
    return LibraryConfig(**values)


def _to_int(name: str, value: Any) -> int:
    """Converts a config value to a positive int."""
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Config value {name} must be an integer") from e
    if number <= 0:
        raise ValidationError(f"Config value {name} must be positive")
    return number


def configure_logging(level: str = 'INFO') -> None:
    """Configures root logging for an entry point."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
