"""Schema (namespace) factories."""
import logging
from typing import Dict, List, Optional

from psycopg2.extensions import connection

from .config import is_system_schema
from .errors import NotFoundError
from .factory import dict_cursor
from .models import Schema

logger = logging.getLogger(__name__)

SCHEMAS_QUERY = """
    SELECT n.nspname AS schemaname, n.oid AS schema_oid,
        pg_get_userbyid(n.nspowner) AS owner
    FROM pg_namespace n
"""


def _schema_from_row(row) -> Schema:
    return Schema(name=row['schemaname'], oid=row['schema_oid'], owner=row['owner'])


class SchemaFactory:
    """Reads namespaces straight from the catalog on every call."""

    def get_all(self, con: connection) -> List[Schema]:
        """Non-system schemas, ordered by name."""
        with dict_cursor(con) as cur:
            cur.execute(SCHEMAS_QUERY + " ORDER BY n.nspname")
            rows = cur.fetchall()
        return [_schema_from_row(row) for row in rows if not is_system_schema(row['schemaname'])]

    def get_one(self, con: connection, name: str) -> Schema:
        with dict_cursor(con) as cur:
            cur.execute(SCHEMAS_QUERY + " WHERE n.nspname = %s", (name,))
            row = cur.fetchone()
        if row is None:
            raise NotFoundError(f"no such schema: {name}")
        return _schema_from_row(row)


class CachingSchemaFactory(SchemaFactory):
    """Reads pg_namespace once and answers from memory afterwards.

    Shared by every caching object factory of a run, so bulk rows resolve
    their schema_oid without further queries.
    """

    def __init__(self):
        self._by_oid: Optional[Dict[int, Schema]] = None

    def _load(self, con: connection) -> Dict[int, Schema]:
        if self._by_oid is None:
            with dict_cursor(con) as cur:
                cur.execute(SCHEMAS_QUERY + " ORDER BY n.nspname")
                rows = cur.fetchall()
            self._by_oid = {row['schema_oid']: _schema_from_row(row) for row in rows}
            logger.debug("cached %d namespace(s)", len(self._by_oid))
        return self._by_oid

    def get_all(self, con: connection) -> List[Schema]:
        schemas = [s for s in self._load(con).values() if not is_system_schema(s.name)]
        return sorted(schemas, key=lambda s: s.name)

    def get_one(self, con: connection, name: str) -> Schema:
        for schema in self._load(con).values():
            if schema.name == name:
                return schema
        raise NotFoundError(f"no such schema: {name}")

    def get_by_oid(self, con: connection, oid: int) -> Optional[Schema]:
        """Schema with this oid, or None for system namespaces."""
        schema = self._load(con).get(oid)
        if schema is None or is_system_schema(schema.name):
            return None
        return schema
