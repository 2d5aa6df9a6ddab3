"""
CREATE TABLE generation.

Body order: column clauses (user columns, then synthetic ones, all through
the same column_clause path), relationship foreign keys, declared
constraints. Table options follow the closing paren: WITHOUT ROWID, STRICT.
"""

from typing import Mapping, Optional

from strata.model import (
    ConstraintDefinition, RelationshipKind, ResolvedModel, ColumnDefinition,
)
from strata.types import format_default, map_type


def column_clause(name: str, col: ColumnDefinition) -> str:
    """`name TYPE [NOT NULL] [PRIMARY KEY [AUTOINCREMENT]] [UNIQUE] [DEFAULT ..] ...`"""
    storage = map_type(col.type)
    parts = [name, storage]

    if not col.allow_null:
        parts.append('NOT NULL')
    if col.primary_key:
        parts.append('PRIMARY KEY')
        if col.auto_increment and storage == 'INTEGER':
            parts.append('AUTOINCREMENT')
    if col.unique:
        parts.append('UNIQUE')
    if col.has_schema_default:
        parts.append(f"DEFAULT {format_default(col.default)}")
    elif col.default_expression:
        parts.append(f"DEFAULT ({col.default_expression})")

    if col.check:
        parts.append(f"CHECK ({col.check})")
    if col.collate and storage == 'TEXT':
        parts.append(f"COLLATE {col.collate}")
    if col.generated:
        mode = 'STORED' if col.stored else 'VIRTUAL'
        parts.append(f"GENERATED ALWAYS AS ({col.generated}) {mode}")
    if col.references:
        ref_table = col.references.get('table') or col.references.get('model')
        ref_column = col.references.get('column') or col.references.get('key') or 'id'
        parts.append(f"REFERENCES {ref_table}({ref_column})")
        if col.on_delete:
            parts.append(f"ON DELETE {col.on_delete.upper()}")
        if col.on_update:
            parts.append(f"ON UPDATE {col.on_update.upper()}")

    return ' '.join(parts)


def foreign_key_clauses(model: ResolvedModel,
                        tables: Optional[Mapping[str, str]] = None) -> list[str]:
    """FOREIGN KEY clauses for belongs_to relationships that name a foreign key.

    tables maps model name → table name; an unknown target is used literally.
    """
    tables = tables or {}
    clauses = []
    for rel in model.definition.relationships:
        if rel.kind is not RelationshipKind.BELONGS_TO or not rel.foreign_key:
            continue
        target = tables.get(rel.target, rel.target)
        fk = (f"FOREIGN KEY ({model.column_for(rel.foreign_key)}) "
              f"REFERENCES {target}({rel.source_key or 'id'})")
        if rel.on_delete:
            fk += f" ON DELETE {rel.on_delete.upper()}"
        if rel.on_update:
            fk += f" ON UPDATE {rel.on_update.upper()}"
        clauses.append(fk)
    return clauses


def constraint_clause(constraint: ConstraintDefinition) -> Optional[str]:
    """One table constraint, or None when the entry is incomplete."""
    kind = (constraint.type or '').lower().replace('-', '_')
    columns = ', '.join(constraint.columns or [])
    sql = None

    if kind == 'check' and constraint.expression:
        sql = f"CHECK ({constraint.expression})"
    elif kind == 'unique' and columns:
        sql = f"UNIQUE ({columns})"
    elif kind in ('primary_key', 'primarykey') and columns:
        sql = f"PRIMARY KEY ({columns})"
    elif kind in ('foreign_key', 'foreignkey') and columns and constraint.references:
        ref = constraint.references
        ref_cols = ref.get('columns') or ref.get('fields') or ['id']
        if isinstance(ref_cols, str):
            ref_cols = [ref_cols]
        sql = f"FOREIGN KEY ({columns}) REFERENCES {ref['table']}({', '.join(ref_cols)})"
        if constraint.on_delete:
            sql += f" ON DELETE {constraint.on_delete.upper()}"
        if constraint.on_update:
            sql += f" ON UPDATE {constraint.on_update.upper()}"

    if sql and constraint.name:
        sql = f"CONSTRAINT {constraint.name} {sql}"
    return sql


def table_options(model: ResolvedModel) -> list[str]:
    options = []
    if model.definition.without_rowid:
        options.append('WITHOUT ROWID')
    if model.definition.strict:
        options.append('STRICT')
    return options


def create_table_sql(model: ResolvedModel,
                     tables: Optional[Mapping[str, str]] = None) -> str:
    """Full CREATE TABLE statement for a resolved model."""
    body = [column_clause(name, col) for name, col in model.columns.items()]
    body += foreign_key_clauses(model, tables)
    for constraint in model.definition.constraints:
        clause = constraint_clause(constraint)
        if clause:
            body.append(clause)

    exists = 'IF NOT EXISTS ' if model.definition.if_not_exists else ''
    sql = f"CREATE TABLE {exists}{model.table_name} ({', '.join(body)})"
    options = table_options(model)
    if options:
        sql += ' ' + ', '.join(options)
    return sql
