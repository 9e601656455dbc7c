"""
Decide whether an object's data, not just its structure, goes into a backup.
"""
from fnmatch import fnmatchcase
from typing import Iterable


class DataFilter:
    """Base policy: answers dump_data for a schema/object pair."""

    def dump_data(self, schema_name: str, object_name: str) -> bool:
        raise NotImplementedError


class NoDataFilter(DataFilter):
    """Structure only."""

    def dump_data(self, schema_name: str, object_name: str) -> bool:
        return False


class AllDataFilter(DataFilter):
    """Structure and data of everything."""

    def dump_data(self, schema_name: str, object_name: str) -> bool:
        return True


class PatternDataFilter(DataFilter):
    """Dump data for objects whose "schema.object" matches a glob pattern.

    Example patterns: "public.*", "*.counter_seq", "billing.invoice_id_seq".
    """

    def __init__(self, patterns: Iterable[str]):
        self.patterns = tuple(patterns)

    def dump_data(self, schema_name: str, object_name: str) -> bool:
        qualified = f"{schema_name}.{object_name}"
        return any(fnmatchcase(qualified, pattern) for pattern in self.patterns)

    def __repr__(self) -> str:
        return f"PatternDataFilter({list(self.patterns)!r})"
