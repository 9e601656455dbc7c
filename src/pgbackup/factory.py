"""
Per-kind object factories.

DBOFactory reads one schema at a time with a schema-scoped catalog query.
CachingDBOFactory reads every schema with one catalog-wide query, the first
time it is asked, and serves later requests from the per-schema partition.
"""
import logging
from abc import ABC, abstractmethod
from typing import ClassVar, Dict, List, Optional

from psycopg2.extensions import connection
from psycopg2.extras import DictCursor

from .errors import NotFoundError
from .models import DbBackupObject, ObjectKind, Schema

logger = logging.getLogger(__name__)


def dict_cursor(con: connection):
    """Cursor whose rows are addressed by column name."""
    return con.cursor(cursor_factory=DictCursor)


class DBOFactory(ABC):
    """Retrieves the objects of one kind."""

    kind: ClassVar[Optional[ObjectKind]] = None

    @abstractmethod
    def get_all(self, con: connection, schema: Schema) -> List[DbBackupObject]:
        """All objects of this kind in schema; empty list when there are none."""

    @abstractmethod
    def get_one(self, con: connection, name: str, schema: Schema) -> DbBackupObject:
        """The named object in schema.

        Raises:
            NotFoundError: no catalog row matches
        """

    def not_found(self, name: str) -> NotFoundError:
        return NotFoundError(f"no such {self.kind.value}: {name}")


class CachingDBOFactory(DBOFactory):
    """Bulk factory partitioning one catalog-wide query by owning schema.

    The partition map belongs to the instance; use one instance per backup
    run. Not thread-safe.
    """

    # Kinds whose catalog query cannot run without a schema predicate set this to False
    bulk_supported = True

    def __init__(self, schema_factory):
        self.schema_factory = schema_factory
        # raw bulk rows by schema_oid; objects are built when a schema is first asked for
        self._rows: Optional[Dict[int, list]] = None
        self._objects: Dict[int, List[DbBackupObject]] = {}

    @abstractmethod
    def get_all_statement(self, con: connection) -> str:
        """Catalog-wide query; must return a schema_oid column.

        Raises:
            UnsupportedOperationError: kind has no bulk query
        """

    @abstractmethod
    def new_object(self, con: connection, row, schema: Schema) -> DbBackupObject:
        """Build one object from a bulk query row and its owning schema."""

    def _load_rows(self, con: connection) -> Dict[int, list]:
        if self._rows is not None:
            return self._rows

        statement = self.get_all_statement(con)
        with dict_cursor(con) as cur:
            cur.execute(statement)
            rows = cur.fetchall()

        partitions: Dict[int, list] = {}
        for row in rows:
            partitions.setdefault(row['schema_oid'], []).append(row)

        logger.debug("cached %d %s row(s) in %d schema(s)",
                     len(rows), self.kind.value, len(partitions))
        self._rows = partitions
        return partitions

    def _partition(self, con: connection, schema: Schema) -> List[DbBackupObject]:
        if schema.oid in self._objects:
            return self._objects[schema.oid]

        rows = self._load_rows(con).get(schema.oid, [])
        owner = self.schema_factory.get_by_oid(con, schema.oid)
        if owner is None:
            # system namespace
            objects = []
        else:
            objects = [self.new_object(con, row, owner) for row in rows]
        self._objects[schema.oid] = objects
        return objects

    def get_all(self, con: connection, schema: Schema) -> List[DbBackupObject]:
        return list(self._partition(con, schema))

    def get_one(self, con: connection, name: str, schema: Schema) -> DbBackupObject:
        for obj in self._partition(con, schema):
            if obj.name == name:
                return obj
        raise self.not_found(name)
