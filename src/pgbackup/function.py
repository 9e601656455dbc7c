"""Functions: catalog queries and DDL rendering."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from psycopg2.extensions import connection

from .data_filter import DataFilter
from .errors import UnsupportedOperationError
from .factory import CachingDBOFactory, DBOFactory, dict_cursor
from .models import DbBackupObject, ObjectKind, Schema, strip_schema_prefix

logger = logging.getLogger(__name__)

# internal-language functions have no reconstructable definition, only prosrc
FUNCTIONS_QUERY = (
    "select p.proname as function_name, "
    "pg_get_userbyid(p.proowner) as owner, "
    "case when l.lanname = 'internal' then p.prosrc else pg_get_functiondef(p.oid) end as definition "
    "from pg_proc p left join pg_namespace n on p.pronamespace = n.oid "
    "left join pg_language l on p.prolang = l.oid where n.nspname= %s"
)

FUNCTION_QUERY = FUNCTIONS_QUERY + " and p.proname= %s"


@dataclass
class Function(DbBackupObject):
    """Function whose definition is already a CREATE OR REPLACE statement."""
    definition: str

    kind = ObjectKind.FUNCTION

    def __post_init__(self):
        self.definition = strip_schema_prefix(self.definition, self.schema)

    def create_sql(self, data_filter: Optional[DataFilter] = None) -> str:
        sql = self.definition.rstrip()
        if not sql.endswith(';'):
            sql += ';'
        return sql + "\n"


class FunctionFactory(DBOFactory):

    kind = ObjectKind.FUNCTION

    def get_all(self, con: connection, schema: Schema) -> List[Function]:
        with dict_cursor(con) as cur:
            cur.execute(FUNCTIONS_QUERY, (schema.name,))
            rows = cur.fetchall()
        logger.debug("%d function(s) in %s", len(rows), schema.name)
        return [Function(row['function_name'], schema, row['owner'], row['definition'])
                for row in rows]

    def get_one(self, con: connection, name: str, schema: Schema) -> Function:
        with dict_cursor(con) as cur:
            cur.execute(FUNCTION_QUERY, (schema.name, name))
            row = cur.fetchone()
        if row is None:
            raise self.not_found(name)
        return Function(name, schema, row['owner'], row['definition'])


class CachingFunctionFactory(CachingDBOFactory):
    """Functions have no catalog-wide query; use FunctionFactory instead."""

    kind = ObjectKind.FUNCTION
    bulk_supported = False

    def get_all_statement(self, con: connection) -> str:
        raise UnsupportedOperationError("functions cannot be read in bulk")

    def new_object(self, con: connection, row, schema: Schema) -> Function:
        raise UnsupportedOperationError("functions cannot be read in bulk")
