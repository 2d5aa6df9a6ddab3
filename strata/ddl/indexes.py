"""
CREATE INDEX generation.

Sources, in order: declared IndexDefinitions, then columns flagged `indexed`.
Entries without fields are skipped. Unnamed indexes get
idx_<table>_<fields> (unique_<table>_<fields> for unique ones).
"""

import re

from strata.model import IndexDefinition, IndexField, ResolvedModel


def index_name(table_name: str, index: IndexDefinition) -> str:
    field_part = '_'.join(
        f if isinstance(f, str) else f.name for f in index.fields
    )
    field_part = re.sub(r'\W', '_', field_part)[:50]
    prefix = 'unique' if index.unique else 'idx'
    return f"{prefix}_{table_name}_{field_part}".lower()


def _field_sql(model: ResolvedModel, f) -> str:
    if isinstance(f, str):
        return model.column_for(f)
    sql = f.name if f.expression else model.column_for(f.name)
    if f.collate:
        sql += f" COLLATE {f.collate}"
    if f.order:
        sql += f" {f.order.upper()}"
    return sql


def create_index_sql(model: ResolvedModel, index: IndexDefinition) -> str:
    unique = 'UNIQUE ' if index.unique else ''
    exists = 'IF NOT EXISTS ' if index.if_not_exists else ''
    name = index.name or index_name(model.table_name, index)
    fields = ', '.join(_field_sql(model, f) for f in index.fields)
    sql = f"CREATE {unique}INDEX {exists}{name} ON {model.table_name} ({fields})"
    if index.where:
        sql += f" WHERE {index.where}"
    return sql


def generate_index_sql(model: ResolvedModel) -> list[str]:
    """All CREATE INDEX statements for a model, declaration order preserved."""
    indexes = [i for i in model.definition.indexes if i.fields]
    for col_name, col in model.columns.items():
        if col.indexed:
            indexes.append(IndexDefinition(
                fields=[IndexField(col_name)],
                name=col.indexed if isinstance(col.indexed, str) else None,
                if_not_exists=True,
            ))
    return [create_index_sql(model, i) for i in indexes]
