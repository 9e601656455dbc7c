"""
Sequences: catalog queries, current value capture and DDL rendering.

Two catalog shapes are supported. From PostgreSQL 10 the sequence parameters
live in pg_sequence and the current value has to be read from the sequence
relation with a second query. Before 10 a single "SELECT * FROM <sequence>"
returns both.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import psycopg2
from psycopg2.extensions import connection

from .config import PG_SEQUENCE_CATALOG_VERSION
from .data_filter import DataFilter
from .errors import NotFoundError, UnsupportedOperationError
from .factory import CachingDBOFactory, DBOFactory, dict_cursor
from .models import DbBackupObject, ObjectKind, Schema, qident

logger = logging.getLogger(__name__)


class SequenceCatalogShape(Enum):
    """Where the server keeps sequence parameters."""
    LEGACY = "legacy"  # columns of the sequence relation itself
    MODERN = "modern"  # pg_sequence

    @classmethod
    def for_server_version(cls, server_version: int) -> "SequenceCatalogShape":
        if server_version >= PG_SEQUENCE_CATALOG_VERSION:
            return cls.MODERN
        return cls.LEGACY


SEQUENCES_QUERY = (
    "SELECT c.relname AS sequencename, pg_get_userbyid(c.relowner) AS owner FROM pg_class c "
    "WHERE c.relkind='S' AND c.relnamespace = %s"
)

SEQUENCE_QUERY = SEQUENCES_QUERY + " AND c.relname = %s"

ALL_SEQUENCES_QUERY = (
    "SELECT c.relname AS sequencename, pg_get_userbyid(c.relowner) AS owner, "
    "c.relnamespace AS schema_oid FROM pg_class c WHERE c.relkind='S'"
)

PG_SEQUENCE_QUERY = (
    "select seqstart as start_value, seqincrement as increment_by, "
    "seqmax as max_value, seqmin as min_value, seqcache as cache_value, seqcycle as is_cycled"
    " from pg_sequence where seqrelid=%s::regclass"
)

LAST_VALUE_SAVEPOINT = "sequence_last_value"


def _relation(schema: Schema, name: str) -> str:
    return f"{qident(schema.name)}.{qident(name)}"


@dataclass
class Sequence(DbBackupObject):
    start_value: int
    increment_by: int
    max_value: int
    min_value: int
    cache_value: int
    is_cycled: bool
    # None until read; may stay None when the server refuses the read
    last_value: Optional[int] = None

    kind = ObjectKind.SEQUENCE

    @classmethod
    def from_row(cls, name: str, schema: Schema, owner: str, row) -> "Sequence":
        """Build from a metadata row; legacy rows also carry last_value."""
        return cls(
            name=name,
            schema=schema,
            owner=owner,
            start_value=row['start_value'],
            increment_by=row['increment_by'],
            max_value=row['max_value'],
            min_value=row['min_value'],
            cache_value=row['cache_value'],
            is_cycled=bool(row['is_cycled']),
            last_value=row['last_value'] if 'last_value' in row.keys() else None,
        )

    def create_sql(self, data_filter: Optional[DataFilter] = None) -> str:
        if data_filter is None:
            raise UnsupportedOperationError("sequence DDL needs a data filter decision")

        parts = [f"CREATE SEQUENCE {self.name}"]
        if self.increment_by != 1:
            parts.append(f" INCREMENT BY {self.increment_by}")
        parts.append(f" MINVALUE {self.min_value} MAXVALUE {self.max_value}")
        if self.is_cycled:
            parts.append(" CYCLE")
        if self.cache_value > 1:
            parts.append(f" CACHE {self.cache_value}")
        parts.append(f" START {self.start_value};\n")

        if data_filter.dump_data(self.schema.name, self.name):
            if self.last_value is None:
                logger.warning("current value of %s unknown, setval omitted", self.qualified_name)
            else:
                parts.append(f"SELECT setval('{self.name}',{self.last_value}) ;\n")
        return "".join(parts)


def _read_last_value(con: connection, schema: Schema, name: str) -> Optional[int]:
    """Best-effort read of the current value straight from the sequence."""
    # a failed statement aborts the enclosing transaction unless rolled back to a savepoint
    in_transaction = not con.autocommit
    if in_transaction:
        with con.cursor() as cur:
            cur.execute(f"SAVEPOINT {LAST_VALUE_SAVEPOINT}")
    try:
        with dict_cursor(con) as cur:
            cur.execute(f"SELECT last_value FROM {_relation(schema, name)}")
            row = cur.fetchone()
    except psycopg2.ProgrammingError as e:
        if in_transaction:
            with con.cursor() as cur:
                cur.execute(f"ROLLBACK TO SAVEPOINT {LAST_VALUE_SAVEPOINT}")
        logger.warning("cannot read last_value of %s.%s: %s", schema.name, name,
                       str(e).strip())
        return None
    if in_transaction:
        with con.cursor() as cur:
            cur.execute(f"RELEASE SAVEPOINT {LAST_VALUE_SAVEPOINT}")
    if row is None:
        return None
    return row['last_value']


def load_sequence(con: connection, schema: Schema, name: str, owner: str,
                  shape: SequenceCatalogShape) -> Sequence:
    """Read one sequence's parameters, and its current value, under the given catalog shape.

    Raises:
        NotFoundError: the metadata query returned no row
    """
    with dict_cursor(con) as cur:
        if shape is SequenceCatalogShape.MODERN:
            cur.execute(PG_SEQUENCE_QUERY, (_relation(schema, name),))
        else:
            cur.execute(f"SELECT * FROM {_relation(schema, name)}")
        row = cur.fetchone()
    if row is None:
        raise NotFoundError(f"no such sequence: {name}")

    sequence = Sequence.from_row(name, schema, owner, row)
    if shape is SequenceCatalogShape.MODERN:
        sequence.last_value = _read_last_value(con, schema, name)
    return sequence


class SequenceFactory(DBOFactory):

    kind = ObjectKind.SEQUENCE

    def __init__(self, shape: SequenceCatalogShape = SequenceCatalogShape.MODERN):
        self.shape = shape

    def get_all(self, con: connection, schema: Schema) -> List[Sequence]:
        with dict_cursor(con) as cur:
            cur.execute(SEQUENCES_QUERY, (schema.oid,))
            rows = cur.fetchall()
        logger.debug("%d sequence(s) in %s", len(rows), schema.name)
        return [load_sequence(con, schema, row['sequencename'], row['owner'], self.shape)
                for row in rows]

    def get_one(self, con: connection, name: str, schema: Schema) -> Sequence:
        with dict_cursor(con) as cur:
            cur.execute(SEQUENCE_QUERY, (schema.oid, name))
            row = cur.fetchone()
        if row is None:
            raise self.not_found(name)
        return load_sequence(con, schema, row['sequencename'], row['owner'], self.shape)


class CachingSequenceFactory(CachingDBOFactory):
    """One pg_class scan for all schemas; parameters are still read per sequence."""

    kind = ObjectKind.SEQUENCE

    def __init__(self, schema_factory,
                 shape: SequenceCatalogShape = SequenceCatalogShape.MODERN):
        super().__init__(schema_factory)
        self.shape = shape

    def get_all_statement(self, con: connection) -> str:
        return ALL_SEQUENCES_QUERY

    def new_object(self, con: connection, row, schema: Schema) -> Sequence:
        return load_sequence(con, schema, row['sequencename'], row['owner'], self.shape)
