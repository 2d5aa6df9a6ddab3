"""
Strata Query Builder — CRUD requests → (sql, params).

Every generator is pure: a request plus the cached {table, columns} pair in,
a Statement out. Values always travel as bound parameters; identifiers are
interpolated, so every identifier in a request is checked against the
model's column list first.

Filters are equality-only (`col = ?`, one placeholder per key, mapping
order). Parameters are coerced with strata.types.coerce.

Usage:
    qb = QueryBuilder('users', ['id', 'email', 'name'])
    qb.select(where={'email': None}, order=[('name', 'ASC')], limit=10)
    # Statement(sql='SELECT * FROM users WHERE email = ? ORDER BY name ASC LIMIT 10',
    #           params=[None])
"""

from typing import Mapping, NamedTuple, Optional, Sequence

from strata.errors import ValidationError
from strata.types import coerce

DIRECTIONS = ('ASC', 'DESC')
AGGREGATES = ('COUNT', 'SUM', 'MIN', 'MAX', 'AVG', 'TOTAL')


class Statement(NamedTuple):
    sql: str
    params: list


class QueryBuilder:
    """DML compiler for one table."""

    def __init__(self, table_name: str, columns: Sequence[str],
                 primary_key: Optional[str] = None,
                 deleted_at: Optional[str] = None):
        self.table_name = table_name
        self.columns = list(columns)
        self._known = set(self.columns)
        self.primary_key = primary_key or 'id'
        self.deleted_at = deleted_at

    @classmethod
    def for_model(cls, model) -> "QueryBuilder":
        """Builder for a ResolvedModel. Primary key resolved here, once."""
        return cls(model.table_name, model.column_names,
                   primary_key=model.primary_key, deleted_at=model.deleted_at)

    def __repr__(self):
        return f"QueryBuilder({self.table_name!r}, pk={self.primary_key!r})"

    # ═══════════════════════════════════════════════════════════════════════
    # CLAUSES
    # ═══════════════════════════════════════════════════════════════════════

    def _column(self, name: str) -> str:
        if self._known and name not in self._known:
            raise ValidationError(
                f"Unknown column {name!r} for table {self.table_name}",
                value=name, allowed=tuple(self.columns),
            )
        return name

    def _where(self, where: Optional[Mapping], with_deleted: bool = True
               ) -> tuple[list[str], list]:
        clauses, params = [], []
        if self.deleted_at and not with_deleted:
            clauses.append(f"{self.deleted_at} IS NULL")
        for key, value in (where or {}).items():
            clauses.append(f"{self._column(key)} = ?")
            params.append(coerce(value))
        return clauses, params

    def _order(self, order) -> str:
        parts = []
        for item in order:
            if isinstance(item, str):
                col, direction = item, 'ASC'
            else:
                col, direction = item
            direction = str(direction).upper()
            if direction not in DIRECTIONS:
                raise ValidationError(
                    f"Invalid order direction: {direction}. Must be one of: ASC, DESC",
                    value=direction, allowed=DIRECTIONS,
                )
            parts.append(f"{self._column(col)} {direction}")
        return ', '.join(parts)

    def _tail(self, sql: str, clauses: list[str], order=None,
              limit=None, offset=None) -> str:
        if clauses:
            sql += f" WHERE {' AND '.join(clauses)}"
        if order:
            sql += f" ORDER BY {self._order(order)}"
        if limit:
            sql += f" LIMIT {int(limit)}"
        if offset:
            sql += f" OFFSET {int(offset)}"
        return sql

    # ═══════════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════════

    def select(self, where: Optional[Mapping] = None, order=None, limit=None,
               offset=None, with_deleted: bool = False) -> Statement:
        """SELECT * FROM t [WHERE ..] [ORDER BY ..] [LIMIT n] [OFFSET n]"""
        clauses, params = self._where(where, with_deleted)
        sql = self._tail(f"SELECT * FROM {self.table_name}", clauses,
                         order=order, limit=limit, offset=offset)
        return Statement(sql, params)

    def select_one(self, where: Optional[Mapping] = None, order=None,
                   with_deleted: bool = False) -> Statement:
        return self.select(where, order=order, limit=1, with_deleted=with_deleted)

    def select_by_pk(self, value, with_deleted: bool = False) -> Statement:
        """SELECT * FROM t WHERE <pk> = ? LIMIT 1"""
        clauses, params = self._where(None, with_deleted)
        clauses.append(f"{self.primary_key} = ?")
        params.append(coerce(value))
        sql = self._tail(f"SELECT * FROM {self.table_name}", clauses, limit=1)
        return Statement(sql, params)

    def aggregate(self, fn: str, column: str = '*', where: Optional[Mapping] = None,
                  with_deleted: bool = False) -> Statement:
        """SELECT <FN>(<col>) AS result FROM t [WHERE ..]"""
        fn = fn.upper()
        if fn not in AGGREGATES:
            raise ValidationError(
                f"Invalid aggregate: {fn}. Must be one of: {', '.join(AGGREGATES)}",
                value=fn, allowed=AGGREGATES,
            )
        target = '*' if column == '*' else self._column(column)
        clauses, params = self._where(where, with_deleted)
        sql = self._tail(f"SELECT {fn}({target}) AS result FROM {self.table_name}", clauses)
        return Statement(sql, params)

    def count(self, where: Optional[Mapping] = None,
              with_deleted: bool = False) -> Statement:
        return self.aggregate('COUNT', '*', where, with_deleted)

    # ═══════════════════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════════════════

    def insert(self, values: Mapping, or_ignore: bool = False) -> Statement:
        """INSERT INTO t (cols) VALUES (?, ..). Empty values → DEFAULT VALUES."""
        verb = 'INSERT OR IGNORE' if or_ignore else 'INSERT'
        if not values:
            return Statement(f"{verb} INTO {self.table_name} DEFAULT VALUES", [])
        cols = [self._column(k) for k in values]
        placeholders = ', '.join('?' for _ in cols)
        sql = f"{verb} INTO {self.table_name} ({', '.join(cols)}) VALUES ({placeholders})"
        return Statement(sql, [coerce(v) for v in values.values()])

    def upsert(self, values: Mapping, conflict: Optional[Sequence[str]] = None) -> Statement:
        """INSERT .. ON CONFLICT(<conflict or pk>) DO UPDATE SET col = excluded.col"""
        if not values:
            raise ValidationError("upsert requires at least one value", value=values)
        targets = [self._column(c) for c in (conflict or [self.primary_key])]
        insert = self.insert(values)
        updates = [c for c in values if c not in targets]
        if updates:
            action = 'DO UPDATE SET ' + ', '.join(f"{c} = excluded.{c}" for c in updates)
        else:
            action = 'DO NOTHING'
        sql = f"{insert.sql} ON CONFLICT({', '.join(targets)}) {action}"
        return Statement(sql, insert.params)

    def update(self, values: Mapping, where: Mapping,
               expressions: Optional[Mapping[str, str]] = None) -> Statement:
        """UPDATE t SET col = ?, .. WHERE col = ? AND ..

        SET parameters precede WHERE parameters. expressions adds raw
        `col = <expr>` assignments taken from model metadata (never user input).
        where must be non-empty.
        """
        if not where:
            raise ValidationError(
                f"update on {self.table_name} requires a non-empty where clause",
                value=where)
        if not values and not expressions:
            raise ValidationError(
                f"update on {self.table_name} requires at least one value", value=values)

        sets = [f"{self._column(k)} = ?" for k in values]
        params = [coerce(v) for v in values.values()]
        for col, expr in (expressions or {}).items():
            sets.append(f"{self._column(col)} = {expr}")

        clauses, where_params = self._where(where)
        sql = f"UPDATE {self.table_name} SET {', '.join(sets)} WHERE {' AND '.join(clauses)}"
        return Statement(sql, params + where_params)

    def increment(self, deltas: Mapping, where: Mapping) -> Statement:
        """UPDATE t SET col = col + ?, .. WHERE .."""
        if not deltas:
            raise ValidationError("increment requires at least one column", value=deltas)
        if not where:
            raise ValidationError(
                f"increment on {self.table_name} requires a non-empty where clause",
                value=where)
        sets = [f"{self._column(c)} = {c} + ?" for c in deltas]
        clauses, where_params = self._where(where)
        sql = f"UPDATE {self.table_name} SET {', '.join(sets)} WHERE {' AND '.join(clauses)}"
        return Statement(sql, [coerce(v) for v in deltas.values()] + where_params)

    def delete(self, where: Mapping) -> Statement:
        """DELETE FROM t WHERE .. (non-empty where; use truncate() for all rows)."""
        if not where:
            raise ValidationError(
                f"delete on {self.table_name} requires a non-empty where clause",
                value=where)
        clauses, params = self._where(where)
        return Statement(f"DELETE FROM {self.table_name} WHERE {' AND '.join(clauses)}",
                         params)

    def truncate(self) -> Statement:
        """DELETE FROM t. Unconditional, no parameters."""
        return Statement(f"DELETE FROM {self.table_name}", [])
