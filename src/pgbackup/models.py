"""Backup object models."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional

from .data_filter import DataFilter


class ObjectKind(Enum):
    """Kinds of backupable database objects."""
    SCHEMA = "schema"
    SEQUENCE = "sequence"
    FUNCTION = "function"
    VIEW = "view"


def qident(name: str) -> str:
    """Quote an SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class Schema:
    """A namespace, identified by its pg_namespace oid."""
    name: str = field(compare=False)
    oid: int
    owner: Optional[str] = field(default=None, compare=False)

    def create_sql(self) -> str:
        sql = f"CREATE SCHEMA IF NOT EXISTS {qident(self.name)};\n"
        if self.owner:
            sql += f"ALTER SCHEMA {qident(self.name)} OWNER TO {qident(self.owner)};\n"
        return sql


@dataclass
class DbBackupObject(ABC):
    """Base class for objects that render themselves as DDL."""
    name: str
    schema: Schema
    owner: str

    kind: ClassVar[Optional[ObjectKind]] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.schema.name}.{self.name}"

    @abstractmethod
    def create_sql(self, data_filter: Optional[DataFilter] = None) -> str:
        """Render the statements recreating this object.

        Args:
            data_filter: decides whether object state (e.g. a sequence's
                current value) is restored too; None means structure only

        Returns:
            SQL text, each statement terminated by ';' and a newline
        """


def strip_schema_prefix(definition: str, schema: Schema) -> str:
    """Remove every "<schema>." so the DDL restores into any schema name."""
    return definition.replace(schema.name + ".", "")
