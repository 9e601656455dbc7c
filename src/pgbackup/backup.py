"""
Backup run: walks schemas and object kinds and concatenates the DDL.
"""
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, TextIO

import networkx as nx
import sqlparse
from psycopg2.extensions import connection

from .config import BackupConfig
from .connection import DatabaseConnection
from .data_filter import DataFilter, NoDataFilter, PatternDataFilter
from .factory import DBOFactory
from .function import CachingFunctionFactory, FunctionFactory
from .models import ObjectKind, Schema, qident
from .schema import CachingSchemaFactory, SchemaFactory
from .sequence import CachingSequenceFactory, SequenceCatalogShape, SequenceFactory
from .view import CachingViewFactory, ViewFactory

logger = logging.getLogger(__name__)

# edge a -> b: objects of kind b may reference objects of kind a
KIND_DEPENDENCIES = nx.DiGraph([
    (ObjectKind.SCHEMA, ObjectKind.SEQUENCE),
    (ObjectKind.SCHEMA, ObjectKind.FUNCTION),
    (ObjectKind.SEQUENCE, ObjectKind.FUNCTION),
    (ObjectKind.SEQUENCE, ObjectKind.VIEW),
    (ObjectKind.FUNCTION, ObjectKind.VIEW),
])

# direct and bulk factory per kind
OBJECT_FACTORIES = {
    ObjectKind.SEQUENCE: (SequenceFactory, CachingSequenceFactory),
    ObjectKind.FUNCTION: (FunctionFactory, CachingFunctionFactory),
    ObjectKind.VIEW: (ViewFactory, CachingViewFactory),
}


def kind_order() -> List[ObjectKind]:
    """Kinds in an order where every kind follows the kinds it depends on."""
    return list(nx.lexicographical_topological_sort(KIND_DEPENDENCIES, key=lambda k: k.value))


def summarize_script(script: str) -> Counter:
    """Count the statements of a script by type (CREATE, SELECT, ...)."""
    counts = Counter()
    for statement in sqlparse.parse(script):
        if not str(statement).strip():
            continue
        counts[statement.get_type()] += 1
    return counts


class SchemaBackup:
    """Generates the DDL of a set of schemas over one connection.

    With caching on, every kind that supports it is read with one
    catalog-wide query shared by all schemas of the run; other kinds fall
    back to one query per schema.
    """

    def __init__(self, conn: connection, data_filter: Optional[DataFilter] = None,
                 shape: SequenceCatalogShape = SequenceCatalogShape.MODERN,
                 caching: bool = True):
        self.conn = conn
        self.data_filter = data_filter or NoDataFilter()
        self.schema_factory = CachingSchemaFactory() if caching else SchemaFactory()
        self.factories = self._build_factories(shape, caching)

    def _build_factories(self, shape: SequenceCatalogShape,
                         caching: bool) -> Dict[ObjectKind, DBOFactory]:
        factories = {}
        for kind, (direct, bulk) in OBJECT_FACTORIES.items():
            kwargs = {'shape': shape} if kind is ObjectKind.SEQUENCE else {}
            if caching and bulk.bulk_supported:
                factories[kind] = bulk(self.schema_factory, **kwargs)
            else:
                factories[kind] = direct(**kwargs)
        return factories

    def schemas(self, schema_names: Optional[Iterable[str]] = None) -> List[Schema]:
        if schema_names:
            return [self.schema_factory.get_one(self.conn, name) for name in schema_names]
        return self.schema_factory.get_all(self.conn)

    def dump_schema(self, schema: Schema) -> str:
        chunks = []
        for kind in kind_order():
            if kind is ObjectKind.SCHEMA:
                chunks.append(schema.create_sql())
                chunks.append(f"SET search_path = {qident(schema.name)};\n")
                continue
            for obj in self.factories[kind].get_all(self.conn, schema):
                chunks.append(obj.create_sql(self.data_filter))
        return "".join(chunks)

    def dump(self, schema_names: Optional[Iterable[str]] = None) -> str:
        """Backup script for the named schemas, or all non-system schemas."""
        schemas = self.schemas(schema_names)
        script = "\n".join(self.dump_schema(schema) for schema in schemas)
        summary = summarize_script(script)
        logger.info("dumped %d schema(s): %s", len(schemas),
                    ", ".join(f"{count} {stype}" for stype, count in sorted(summary.items())))
        return script

    def write(self, stream: TextIO, schema_names: Optional[Iterable[str]] = None):
        stream.write(self.dump(schema_names))


def backup_from_config(config: BackupConfig) -> str:
    """Connect with the configured parameters and dump the configured schemas."""
    with DatabaseConnection(config.database) as conn:
        shape = SequenceCatalogShape.for_server_version(conn.server_version)
        logger.debug("server version %d, %s sequence catalog", conn.server_version, shape.value)
        backup = SchemaBackup(conn, PatternDataFilter(config.data_patterns), shape, config.caching)
        return backup.dump(config.schemas)
