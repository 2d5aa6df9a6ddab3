"""
Strata — declarative models compiled to SQLite.

A model definition goes in; DDL and parameterized DML come out.

Layers:
  types.py     logical type → storage class, value coercion
  model.py     definitions, resolved once into ResolvedModel
  ddl/         CREATE TABLE / INDEX / TRIGGER / VIEW compilation
  query.py     CRUD requests → (sql, params)
  registry.py  relationship metadata, dependency order
  hooks.py     ordered lifecycle callbacks
  validation.py  per-column value rules, checked before writes
  core.py      infrastructure: connection, SQL execution, _ops log
  database.py  Database + Model: the pieces wired together
"""

from strata.config import DatabaseOptions
from strata.database import Database, Model
from strata.ddl import compile_schema
from strata.errors import HookExecutionError, StrataError, TypeLookupError, ValidationError
from strata.hooks import HookRunner, run_hooks
from strata.model import (
    ColumnDefinition, ConstraintDefinition, IndexDefinition, IndexField, ModelDefinition,
    ModelHooks, RelationshipDefinition, RelationshipKind, TriggerDefinition, ViewDefinition,
    resolve_model,
)
from strata.query import QueryBuilder, Statement
from strata.registry import RelationshipRegistry
from strata.types import coerce, map_type

__version__ = "0.1.0"
