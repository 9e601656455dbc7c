"""Views: catalog queries and DDL rendering."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from psycopg2.extensions import connection

from .data_filter import DataFilter
from .factory import CachingDBOFactory, DBOFactory, dict_cursor
from .models import DbBackupObject, ObjectKind, Schema, qident, strip_schema_prefix

logger = logging.getLogger(__name__)

ALL_VIEWS_QUERY = (
    "SELECT c.relname AS viewname, pg_get_userbyid(c.relowner) AS owner, "
    "pg_get_viewdef(c.oid) AS definition, c.relnamespace AS schema_oid "
    "FROM pg_class c WHERE c.relkind = 'v'"
)

VIEWS_QUERY = ALL_VIEWS_QUERY + " AND c.relnamespace = %s"

VIEW_QUERY = VIEWS_QUERY + " AND c.relname = %s"


@dataclass
class View(DbBackupObject):
    definition: str

    kind = ObjectKind.VIEW

    def __post_init__(self):
        self.definition = strip_schema_prefix(self.definition, self.schema)

    def create_sql(self, data_filter: Optional[DataFilter] = None) -> str:
        body = self.definition.strip().rstrip(';')
        return f"CREATE VIEW {qident(self.name)} AS\n{body};\n"


def _view_from_row(row, schema: Schema) -> View:
    return View(row['viewname'], schema, row['owner'], row['definition'])


class ViewFactory(DBOFactory):

    kind = ObjectKind.VIEW

    def get_all(self, con: connection, schema: Schema) -> List[View]:
        with dict_cursor(con) as cur:
            cur.execute(VIEWS_QUERY, (schema.oid,))
            rows = cur.fetchall()
        logger.debug("%d view(s) in %s", len(rows), schema.name)
        return [_view_from_row(row, schema) for row in rows]

    def get_one(self, con: connection, name: str, schema: Schema) -> View:
        with dict_cursor(con) as cur:
            cur.execute(VIEW_QUERY, (schema.oid, name))
            row = cur.fetchone()
        if row is None:
            raise self.not_found(name)
        return _view_from_row(row, schema)


class CachingViewFactory(CachingDBOFactory):

    kind = ObjectKind.VIEW

    def get_all_statement(self, con: connection) -> str:
        return ALL_VIEWS_QUERY

    def new_object(self, con: connection, row, schema: Schema) -> View:
        return _view_from_row(row, schema)
