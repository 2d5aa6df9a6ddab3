"""
Strata Database — model registration and typed CRUD.

    db = Database(':memory:')
    User = db.define({'name': 'User', 'columns': {'email': 'STRING'}})
    row = asyncio.run(User.create({'email': 'a@b.c'}))

define() resolves the definition once, compiles it, executes the DDL in
order, then registers the model's relationships in this database's
RelationshipRegistry. The two are sequential: a table that was created
stays created whatever happens afterwards.

Every Model method is a coroutine. before_* hooks run on the live input
before the statement executes; after_* hooks run after it on an isolated
copy of the outcome, so they cannot change what the caller receives.
"""

from dataclasses import fields
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from strata.config import DatabaseOptions
from strata.core import Driver, SQLiteDriver, diag, log_op
from strata.ddl import compile_schema
from strata.errors import ValidationError
from strata.hooks import HookRunner
from strata.model import (
    ModelDefinition, ModelHooks, RelationshipDefinition, ResolvedModel, resolve_model,
)
from strata.query import QueryBuilder, Statement
from strata.registry import RelationshipRegistry
from strata.types import STRICT_STORAGE_CLASSES, map_type
from strata.validation import validate_row

HOOK_SLOTS = tuple(f.name for f in fields(ModelHooks))


def utc_now() -> str:
    """Current UTC time in the same format as the schema default."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class Database:
    """One connection, its models, and its relationship registry.

    A ready-made driver can be passed instead of a location. _ops logging
    writes through the driver's sqlite3 connection (driver.db).
    """

    def __init__(self, location: str = ':memory:',
                 options: Optional[DatabaseOptions] = None,
                 driver: Optional[Driver] = None):
        self.location = location
        self.options = options or DatabaseOptions.from_env()
        if driver is None:
            driver = SQLiteDriver.open(location, self.options)
        elif not isinstance(driver, Driver):
            raise TypeError(f"Not a driver: {driver!r}")
        if self.options.log_ops and not hasattr(driver, 'db'):
            raise ValidationError("log_ops needs a driver with a sqlite3 connection (.db)",
                                  value=driver)
        self.driver = driver
        self.registry = RelationshipRegistry()
        self.models: dict[str, "Model"] = {}

    # ═══════════════════════════════════════════════════════════════════════
    # SCHEMA
    # ═══════════════════════════════════════════════════════════════════════

    def define(self, definition: Union[ModelDefinition, dict]) -> "Model":
        """Resolve, compile and create a model. Returns its Model handle."""
        if isinstance(definition, dict):
            definition = ModelDefinition.from_dict(definition)
        if definition.name in self.models:
            raise ValidationError(f"Model already defined: {definition.name}",
                                  value=definition.name)

        resolved = resolve_model(definition)
        self._check_strict(resolved)
        for sql in compile_schema(resolved, self.table_names()):
            self._execute_ddl(sql, resolved.table_name, source='define')

        model = Model(self, resolved)
        self.models[resolved.name] = model
        if resolved.definition.relationships:
            self.registry.register(resolved.name, resolved.definition.relationships)
        diag(f"defined {resolved.name} -> {resolved.table_name}", self.options.verbose)
        return model

    def _execute_ddl(self, sql: str, target: str, source: str):
        diag(sql, self.options.verbose)
        self.driver.exec(sql)
        if self.options.log_ops:
            log_op(self.driver.db, 'ddl', target, sql=sql, source=source)

    def _check_strict(self, model: ResolvedModel):
        """STRICT tables reject some storage classes. Warn, never rewrite."""
        if not model.definition.strict:
            return
        for name, col in model.columns.items():
            storage = map_type(col.type)
            if storage not in STRICT_STORAGE_CLASSES:
                diag(f"warning: {model.table_name}.{name} is {storage}, "
                     f"which a STRICT table rejects", self.options.verbose)

    def model(self, name: str) -> "Model":
        try:
            return self.models[name]
        except KeyError:
            raise KeyError(f"Model not defined: {name}") from None

    __getitem__ = model

    def __contains__(self, name: str) -> bool:
        return name in self.models

    def table_names(self) -> dict[str, str]:
        """Model name → table name for every defined model."""
        return {name: m.table_name for name, m in self.models.items()}

    def table_exists(self, table_name: str) -> bool:
        row = self.driver.get(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            [table_name])
        return row is not None

    # ═══════════════════════════════════════════════════════════════════════
    # RELATIONSHIPS
    # ═══════════════════════════════════════════════════════════════════════

    def associate(self, source: str, kind: str, target: str,
                  **options) -> RelationshipDefinition:
        """Register one relationship after definition. Metadata only, no DDL."""
        rel = RelationshipDefinition(kind=kind, target=target, **options)
        self.registry.register(source, [rel])
        return rel

    def relationships(self, model_name: str) -> list[RelationshipDefinition]:
        return self.registry.lookup(model_name)

    def sync(self, force: bool = False) -> list[str]:
        """Create missing tables, belongs_to targets first.

        force=True drops every model's table (dependents first) and
        recreates it. Returns the model names whose DDL ran.
        """
        order = self.registry.creation_order(list(self.models))
        tables = self.table_names()

        if force:
            for name in reversed(order):
                model = self.models[name]
                for view in model.resolved.definition.views:
                    self._execute_ddl(f"DROP VIEW IF EXISTS {view.name}",
                                      model.table_name, source='sync')
                self._execute_ddl(f"DROP TABLE IF EXISTS {model.table_name}",
                                  model.table_name, source='sync')

        created = []
        for name in order:
            model = self.models[name]
            if not force and self.table_exists(model.table_name):
                continue
            for sql in compile_schema(model.resolved, tables):
                self._execute_ddl(sql, model.table_name, source='sync')
            created.append(name)
        return created

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def close(self):
        self.driver.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def __repr__(self):
        return f"Database({self.location!r}, models={list(self.models)})"


class Model:
    """Typed CRUD for one resolved model."""

    def __init__(self, database: Database, resolved: ResolvedModel):
        self.database = database
        self.resolved = resolved
        self.name = resolved.name
        self.table_name = resolved.table_name
        self.primary_key = resolved.primary_key
        self.query = QueryBuilder.for_model(resolved)

    @property
    def driver(self) -> Driver:
        return self.database.driver

    @property
    def hooks(self) -> ModelHooks:
        return self.resolved.definition.hooks

    def add_hook(self, slot: str, hook) -> None:
        """Append a hook to one of the six slots (e.g. 'before_insert')."""
        if slot not in HOOK_SLOTS:
            raise ValidationError(
                f"Invalid hook slot: {slot}. Must be one of: {', '.join(HOOK_SLOTS)}",
                value=slot, allowed=HOOK_SLOTS)
        getattr(self.hooks, slot).append(hook)

    def relationships(self) -> list[RelationshipDefinition]:
        return self.database.relationships(self.name)

    def __repr__(self):
        return f"Model({self.name!r}, table={self.table_name!r})"

    # ═══════════════════════════════════════════════════════════════════════
    # PLUMBING
    # ═══════════════════════════════════════════════════════════════════════

    async def _before(self, event: str, data, skip: bool = False):
        if not skip:
            await HookRunner(getattr(self.hooks, f"before_{event}")).run(data)

    async def _after(self, event: str, data, skip: bool = False):
        if not skip:
            await HookRunner(getattr(self.hooks, f"after_{event}")).run(data, isolate=True)

    def _columns(self, values: Optional[dict]) -> dict:
        """Attribute keys → column names."""
        return {self.resolved.column_for(k): v for k, v in (values or {}).items()}

    def _order(self, order):
        if not order:
            return order
        if isinstance(order, str):
            order = [order]
        translated = []
        for item in order:
            if isinstance(item, str):
                translated.append(self.resolved.column_for(item))
            else:
                col, direction = item
                translated.append((self.resolved.column_for(col), direction))
        return translated

    def _run(self, operation: str, stmt: Statement) -> int:
        options = self.database.options
        diag(f"{stmt.sql} {stmt.params}", options.verbose)
        changes = self.driver.run(stmt.sql, stmt.params)
        if options.log_ops:
            log_op(self.driver.db, operation, self.table_name, params=stmt.params,
                   rows_affected=changes, source=f"model:{self.name}", sql=stmt.sql)
        return changes

    def _validate(self, row: dict) -> None:
        validate_row(self.name, self.resolved.columns, row)

    def _insert_values(self, values: dict) -> dict:
        """Column values for an INSERT: callable defaults and timestamps filled."""
        row = self._columns(values)
        for name, col in self.resolved.columns.items():
            if name not in row and callable(col.default):
                row[name] = col.default()
        now = utc_now()
        for name in (self.resolved.created_at, self.resolved.updated_at):
            if name and row.get(name) is None:
                row[name] = now
        return row

    # ═══════════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════════

    async def find_all(self, where: Optional[dict] = None, order=None,
                       limit: Optional[int] = None, offset: Optional[int] = None,
                       with_deleted: bool = False) -> list[dict]:
        stmt = self.query.select(self._columns(where), order=self._order(order),
                                 limit=limit, offset=offset, with_deleted=with_deleted)
        return self.driver.all(stmt.sql, stmt.params)

    async def find_by_pk(self, value, with_deleted: bool = False) -> Optional[dict]:
        stmt = self.query.select_by_pk(value, with_deleted=with_deleted)
        return self.driver.get(stmt.sql, stmt.params)

    async def find_one(self, where: Optional[dict] = None, order=None,
                       with_deleted: bool = False) -> Optional[dict]:
        stmt = self.query.select_one(self._columns(where), order=self._order(order),
                                     with_deleted=with_deleted)
        return self.driver.get(stmt.sql, stmt.params)

    async def count(self, where: Optional[dict] = None, with_deleted: bool = False) -> int:
        stmt = self.query.count(self._columns(where), with_deleted=with_deleted)
        return self.driver.get(stmt.sql, stmt.params)['result']

    async def find_and_count_all(self, where: Optional[dict] = None, order=None,
                                 limit: Optional[int] = None, offset: Optional[int] = None,
                                 with_deleted: bool = False) -> dict:
        """{'count': total matching rows, 'rows': the requested page}"""
        rows = await self.find_all(where, order=order, limit=limit, offset=offset,
                                   with_deleted=with_deleted)
        total = await self.count(where, with_deleted=with_deleted)
        return {'count': total, 'rows': rows}

    async def _aggregate(self, fn: str, column: str, where: Optional[dict]):
        stmt = self.query.aggregate(fn, self.resolved.column_for(column),
                                    self._columns(where))
        return self.driver.get(stmt.sql, stmt.params)['result']

    async def min(self, column: str, where: Optional[dict] = None):
        return await self._aggregate('MIN', column, where)

    async def max(self, column: str, where: Optional[dict] = None):
        return await self._aggregate('MAX', column, where)

    async def sum(self, column: str, where: Optional[dict] = None):
        """TOTAL(): 0.0 rather than NULL over an empty set."""
        return await self._aggregate('TOTAL', column, where)

    async def average(self, column: str, where: Optional[dict] = None):
        return await self._aggregate('AVG', column, where)

    # ═══════════════════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════════════════

    async def create(self, values: Optional[dict] = None,
                     skip_hooks: bool = False) -> dict:
        """Insert one row, return it as stored."""
        values = dict(values or {})
        await self._before('insert', values, skip_hooks)

        row = self._insert_values(values)
        self._validate(row)
        self._run('create', self.query.insert(row))
        created = self._fetch_inserted(row)

        await self._after('insert', created, skip_hooks)
        return created

    def _fetch_inserted(self, row: dict) -> dict:
        pk = self.primary_key
        if pk not in self.resolved.columns:
            return row
        key = row[pk] if row.get(pk) is not None else self.driver.last_row_id
        stmt = self.query.select_by_pk(key, with_deleted=True)
        return self.driver.get(stmt.sql, stmt.params) or row

    async def bulk_create(self, records: Iterable[dict],
                          skip_hooks: bool = False) -> list[dict]:
        """create() for each record, in order. Stops at the first failure."""
        return [await self.create(r, skip_hooks=skip_hooks) for r in records]

    async def upsert(self, values: dict, conflict: Optional[list] = None,
                     skip_hooks: bool = False) -> Optional[dict]:
        """INSERT .. ON CONFLICT DO UPDATE. Conflict target defaults to the primary key."""
        values = dict(values)
        await self._before('insert', values, skip_hooks)

        row = self._insert_values(values)
        self._validate(row)
        targets = [self.resolved.column_for(c) for c in (conflict or [self.primary_key])]
        missing = [t for t in targets if t not in row]
        if missing:
            raise ValidationError(
                f"upsert on {self.table_name} needs values for conflict columns: "
                f"{', '.join(missing)}", value=missing)
        if self.resolved.created_at:
            row.pop(self.resolved.created_at, None)
        self._run('upsert', self.query.upsert(row, conflict=targets))
        result = await self.find_one({t: row[t] for t in targets}, with_deleted=True)

        await self._after('insert', result, skip_hooks)
        return result

    async def find_or_create(self, where: dict, defaults: Optional[dict] = None
                             ) -> tuple[dict, bool]:
        """(row, created). Creates from where + defaults when nothing matches."""
        found = await self.find_one(where)
        if found is not None:
            return found, False
        return await self.create({**where, **(defaults or {})}), True

    async def update(self, values: dict, where: dict, skip_hooks: bool = False) -> int:
        """UPDATE matching rows. Returns rows affected. where must be non-empty."""
        if not where:
            raise ValidationError(
                f"update on {self.table_name} requires a non-empty where clause",
                value=where)
        values = dict(values)
        await self._before('update', values, skip_hooks)

        row = self._columns(values)
        self._validate(row)
        if self.resolved.updated_at:
            row[self.resolved.updated_at] = utc_now()
        expressions = {}
        if self.resolved.version:
            row.pop(self.resolved.version, None)
            expressions[self.resolved.version] = f"{self.resolved.version} + 1"
        changes = self._run('update', self.query.update(row, self._columns(where),
                                                         expressions=expressions))

        await self._after('update', row, skip_hooks)
        return changes

    async def increment(self, columns: Union[str, list, dict], where: dict,
                        by: Union[int, float] = 1) -> int:
        """Add `by` (or per-column amounts from a dict) to numeric columns."""
        if isinstance(columns, str):
            columns = [columns]
        deltas = columns if isinstance(columns, dict) else {c: by for c in columns}
        stmt = self.query.increment(self._columns(deltas), self._columns(where))
        return self._run('increment', stmt)

    async def decrement(self, columns: Union[str, list, dict], where: dict,
                        by: Union[int, float] = 1) -> int:
        if isinstance(columns, dict):
            columns = {c: -v for c, v in columns.items()}
            return await self.increment(columns, where)
        return await self.increment(columns, where, by=-by)

    # ═══════════════════════════════════════════════════════════════════════
    # DELETES
    # ═══════════════════════════════════════════════════════════════════════

    async def destroy(self, where: dict, force: bool = False,
                      skip_hooks: bool = False) -> int:
        """Delete matching rows. Soft-delete models stamp deleted_at unless force."""
        if not where:
            raise ValidationError(
                f"destroy on {self.table_name} requires a non-empty where clause",
                value=where)
        where = dict(where)
        await self._before('delete', where, skip_hooks)

        columns = self._columns(where)
        if self.resolved.deleted_at and not force:
            stmt = self.query.update({self.resolved.deleted_at: utc_now()}, columns)
            changes = self._run('soft_delete', stmt)
        else:
            changes = self._run('destroy', self.query.delete(columns))

        await self._after('delete', where, skip_hooks)
        return changes

    async def restore(self, where: dict) -> int:
        """Clear deleted_at on matching rows. Soft-delete models only."""
        if not self.resolved.deleted_at:
            raise ValidationError(
                f"restore is only available for soft-delete models ({self.name})",
                value=self.name)
        stmt = self.query.update({self.resolved.deleted_at: None}, self._columns(where))
        return self._run('restore', stmt)

    async def truncate(self) -> int:
        """Delete every row. The only unconditional write."""
        return self._run('truncate', self.query.truncate())


__all__ = ['Database', 'Model', 'utc_now', 'HOOK_SLOTS']
