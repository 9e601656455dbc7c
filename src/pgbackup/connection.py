"""Database connection handling module."""
import logging
from typing import Dict, Optional

import psycopg2
from psycopg2.extensions import connection, ISOLATION_LEVEL_REPEATABLE_READ

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Read-only snapshot connection with context manager support.

    All catalog reads of one backup run go through a single REPEATABLE READ
    transaction, so every schema is dumped from the same catalog state.
    """

    def __init__(self, config: Dict[str, str]):
        """Initialize connection parameters.

        Args:
            config: psycopg2.connect keyword arguments
        """
        self.config = config
        self._conn: Optional[connection] = None

    def connect(self) -> connection:
        """Establish database connection.

        Returns:
            Active database connection
        """
        if not self._conn or self._conn.closed:
            self._conn = psycopg2.connect(**self.config)
            self._conn.set_session(isolation_level=ISOLATION_LEVEL_REPEATABLE_READ,
                                   readonly=True)
            logger.debug("connected to %s on %s", self.config.get('dbname'),
                         self.config.get('host'))
        return self._conn

    @property
    def server_version(self) -> int:
        return self.connect().server_version

    def close(self):
        """Roll back the snapshot transaction and close the connection."""
        if self._conn and not self._conn.closed:
            self._conn.rollback()
            self._conn.close()
        self._conn = None

    def __enter__(self) -> connection:
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
