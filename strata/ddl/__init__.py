"""
Schema compiler — ResolvedModel → ordered DDL.

Order is fixed: table, indexes, triggers, views. Constraints are part of the
table body (SQLite cannot add them afterwards).
"""

from typing import Mapping, Optional

from strata.ddl.indexes import generate_index_sql
from strata.ddl.tables import create_table_sql
from strata.ddl.triggers import generate_trigger_sql
from strata.ddl.views import generate_view_sql
from strata.model import ModelDefinition, resolve_model


def compile_schema(model, tables: Optional[Mapping[str, str]] = None) -> list[str]:
    """DDL statements for a model. Accepts a ModelDefinition or ResolvedModel.

    tables maps model name → table name for foreign-key targets.
    """
    if isinstance(model, ModelDefinition):
        model = resolve_model(model)
    statements = [create_table_sql(model, tables)]
    statements += generate_index_sql(model)
    statements += generate_trigger_sql(model)
    statements += generate_view_sql(model)
    return statements


__all__ = ['compile_schema']
