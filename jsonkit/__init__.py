__version__ = "1.0.0"

from .errors import (
    JsonKitError, ConfigurationError, MissingFieldError, QueryError, PersistenceError, PatternError,
)
from .query import MISSING, evaluate, matches, filter_documents, sort_documents, values_equal
from .chain import Chain
from .database import Database
from .observed import ObservedDict, ObservedList
from .magic import MagicDatabase, magic

__all__ = [
    "Database", "Chain", "MagicDatabase", "magic",
    "ObservedDict", "ObservedList",
    "MISSING", "evaluate", "matches", "filter_documents", "sort_documents", "values_equal",
    "JsonKitError", "ConfigurationError", "MissingFieldError", "QueryError",
    "PersistenceError", "PatternError",
]
