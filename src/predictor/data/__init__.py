"""Result persistence layer.

Provides the SQLite connection manager and the append-only store that
sessions write one row per resolved bet into.
"""

from predictor.data.database import ResultDatabase
from predictor.data.store import ResultStore

__all__ = ["ResultDatabase", "ResultStore"]
