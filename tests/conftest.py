"""Shared pytest fixtures: an in-memory stand-in for a psycopg2 connection."""
import pytest
import psycopg2

from pgbackup.models import Schema, qident


class FakeCursor:
    """Cursor answering queries from a FakeCatalog."""

    def __init__(self, conn):
        self.conn = conn
        self.closed = False
        self._rows = []

    def execute(self, query, params=None):
        assert not self.closed, "execute on closed cursor"
        self.conn.executed.append((query, params))
        self._rows = list(self.conn.catalog.answer(query, params))

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class FakeConnection:
    """Records executed statements and every cursor handed out."""

    def __init__(self, catalog, autocommit=False, server_version=150004):
        self.catalog = catalog
        self.autocommit = autocommit
        self.server_version = server_version
        self.executed = []
        self.cursors = []

    def cursor(self, cursor_factory=None):
        cur = FakeCursor(self)
        self.cursors.append(cur)
        return cur

    def queries(self, fragment):
        return [q for q, _ in self.executed if fragment in q]


class FakeCatalog:
    """Just enough of pg_namespace, pg_class, pg_sequence and pg_proc."""

    def __init__(self):
        self.namespaces = [
            {'schemaname': 'pg_catalog', 'schema_oid': 11, 'owner': 'postgres'},
            {'schemaname': 'information_schema', 'schema_oid': 13000, 'owner': 'postgres'},
        ]
        self.sequences = []
        self.functions = []
        self.views = []
        # relations whose last_value read is refused
        self.unreadable = set()
        # relations the user cannot read at all
        self.locked = set()
        self.failures = []

    def add_schema(self, name, oid, owner='postgres'):
        self.namespaces.append({'schemaname': name, 'schema_oid': oid, 'owner': owner})
        return Schema(name, oid, owner)

    def _schema_name(self, oid):
        return next(n['schemaname'] for n in self.namespaces if n['schema_oid'] == oid)

    def _schema_oid(self, name):
        return next(n['schema_oid'] for n in self.namespaces if n['schemaname'] == name)

    def add_sequence(self, schema, name, owner='app', start_value=1, increment_by=1,
                     max_value=9223372036854775807, min_value=1, cache_value=1,
                     is_cycled=False, last_value=1):
        self.sequences.append({
            'schema_oid': schema.oid, 'sequencename': name, 'owner': owner,
            'start_value': start_value, 'increment_by': increment_by,
            'max_value': max_value, 'min_value': min_value,
            'cache_value': cache_value, 'is_cycled': is_cycled,
            'last_value': last_value,
        })

    def add_function(self, schema, name, definition, owner='app', language='plpgsql'):
        self.functions.append({'nspname': schema.name, 'function_name': name, 'owner': owner,
                               'definition': definition, 'language': language})

    def add_view(self, schema, name, definition, owner='app'):
        self.views.append({'schema_oid': schema.oid, 'viewname': name, 'owner': owner,
                           'definition': definition})

    def _relation(self, seq):
        return f"{qident(self._schema_name(seq['schema_oid']))}.{qident(seq['sequencename'])}"

    def fail_on(self, fragment, error):
        """Raise error from any statement containing fragment."""
        self.failures.append((fragment, error))

    def answer(self, query, params):
        for fragment, error in self.failures:
            if fragment in query:
                raise error

        if 'FROM pg_namespace' in query:
            rows = self.namespaces
            if params:
                rows = [n for n in rows if n['schemaname'] == params[0]]
            return sorted(rows, key=lambda n: n['schemaname'])

        if "c.relkind='S'" in query:
            rows = self.sequences
            if params:
                rows = [s for s in rows if s['schema_oid'] == params[0]]
                if len(params) > 1:
                    rows = [s for s in rows if s['sequencename'] == params[1]]
            return [{'sequencename': s['sequencename'], 'owner': s['owner'],
                     'schema_oid': s['schema_oid']} for s in rows]

        if 'from pg_sequence' in query:
            if params[0] in self.locked:
                raise psycopg2.ProgrammingError(f"permission denied for schema of {params[0]}")
            keys = ('start_value', 'increment_by', 'max_value', 'min_value',
                    'cache_value', 'is_cycled')
            return [{k: s[k] for k in keys} for s in self.sequences
                    if self._relation(s) == params[0]]

        if query.startswith('SELECT last_value FROM '):
            relation = query[len('SELECT last_value FROM '):]
            if relation in self.unreadable:
                raise psycopg2.ProgrammingError(f"permission denied for sequence {relation}")
            return [{'last_value': s['last_value']} for s in self.sequences
                    if self._relation(s) == relation]

        if query.startswith('SELECT * FROM '):
            relation = query[len('SELECT * FROM '):]
            if relation in self.locked:
                raise psycopg2.ProgrammingError(f"permission denied for sequence {relation}")
            return [dict(s, sequence_name=s['sequencename']) for s in self.sequences
                    if self._relation(s) == relation]

        if 'from pg_proc p' in query:
            rows = [f for f in self.functions if f['nspname'] == params[0]]
            if len(params) > 1:
                rows = [f for f in rows if f['function_name'] == params[1]]
            return rows

        if "c.relkind = 'v'" in query:
            rows = self.views
            if params:
                rows = [v for v in rows if v['schema_oid'] == params[0]]
                if len(params) > 1:
                    rows = [v for v in rows if v['viewname'] == params[1]]
            return rows

        # SET, SAVEPOINT and friends
        return []


@pytest.fixture
def catalog():
    """Catalog with two application schemas and a few objects in each."""
    catalog = FakeCatalog()
    app = catalog.add_schema('app', 16384, owner='app')
    billing = catalog.add_schema('billing', 16400, owner='billing')
    catalog.add_schema('empty', 16500)

    catalog.add_sequence(app, 'order_id_seq', last_value=42)
    catalog.add_sequence(app, 'ticket_seq', increment_by=5, cache_value=20,
                         is_cycled=True, min_value=10, max_value=1000,
                         start_value=10, last_value=15)
    catalog.add_sequence(billing, 'invoice_id_seq', owner='billing', last_value=7)
    # system sequence, must never show up
    catalog.sequences.append({
        'schema_oid': 11, 'sequencename': 'internal_seq', 'owner': 'postgres',
        'start_value': 1, 'increment_by': 1, 'max_value': 10, 'min_value': 1,
        'cache_value': 1, 'is_cycled': False, 'last_value': 1,
    })

    catalog.add_function(
        app, 'order_total',
        "CREATE OR REPLACE FUNCTION app.order_total(order_id integer)\n"
        " RETURNS numeric\n LANGUAGE sql\nAS $function$"
        "select sum(amount) from app.order_line where order_id = $1"
        "$function$\n")

    catalog.add_view(app, 'open_orders',
                     " SELECT o.id\n   FROM app.orders o\n  WHERE o.closed = false;")
    catalog.add_view(billing, 'unpaid',
                     " SELECT i.id\n   FROM billing.invoice i\n  WHERE NOT i.paid;")
    return catalog


@pytest.fixture
def conn(catalog):
    return FakeConnection(catalog)


@pytest.fixture
def app_schema():
    return Schema('app', 16384, 'app')


@pytest.fixture
def billing_schema():
    return Schema('billing', 16400, 'billing')
