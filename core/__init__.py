from .config import configure_logging, get_config
from .errors import (
    ConfigurationError,
    DependencyError,
    NotFoundError,
    PersistenceError,
    RecordsError,
    ValidationError,
)

__all__ = [
    "configure_logging",
    "get_config",
    "RecordsError",
    "ValidationError",
    "NotFoundError",
    "DependencyError",
    "PersistenceError",
    "ConfigurationError",
]
