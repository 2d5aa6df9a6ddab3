"""
Strata model definitions — declarative table shape, resolved once.

A ModelDefinition is a plain description: columns, relationships, indexes,
constraints, triggers, views, lifecycle flags and hooks. resolve_model()
turns it into a frozen ResolvedModel exactly once, at define time:

- table name resolved (no re-pluralization later)
- column names final (underscored applied)
- synthetic columns appended: timestamps, soft-delete, version, missing id
- primary key picked (first flagged column, else 'id')

Definitions can be written as dataclasses or as plain dict literals
(ModelDefinition.from_dict), camelCase or snake_case keys.
"""

import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Optional

from strata.errors import ValidationError

# Sentinel: column declares no default (None is a valid default).
NO_DEFAULT = type('NoDefault', (), {'__repr__': lambda self: 'NO_DEFAULT'})()

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_CAMEL = re.compile(r'([a-z0-9])([A-Z])')

ISO_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

REFERENTIAL_ACTIONS = ('CASCADE', 'RESTRICT', 'SET NULL', 'SET DEFAULT', 'NO ACTION')


def snake_case(name: str) -> str:
    """createdAt → created_at"""
    return _CAMEL.sub(r'\1_\2', name).lower()


def validate_identifier(name: str, what: str = "identifier") -> str:
    """Reject anything that is not a bare SQL identifier."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValidationError(f"Invalid {what}: {name!r}", value=name)
    return name


class RelationshipKind(str, Enum):
    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    BELONGS_TO_MANY = "belongs_to_many"


# ═══════════════════════════════════════════════════════════════════════════════
# DEFINITIONS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ColumnDefinition:
    type: str = 'TEXT'
    allow_null: bool = True
    primary_key: bool = False
    auto_increment: bool = False
    unique: bool = False
    default: Any = NO_DEFAULT            # callable → evaluated per insert
    default_expression: Optional[str] = None
    check: Optional[str] = None
    collate: Optional[str] = None
    references: Optional[dict] = None    # {'table': ..., 'column': ...}
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    generated: Optional[str] = None
    stored: bool = False
    indexed: Any = False                 # True or index name
    validate: Optional[dict] = None      # rule name → True, argument or {args, msg}

    @property
    def has_schema_default(self) -> bool:
        return self.default is not NO_DEFAULT and not callable(self.default)


@dataclass(frozen=True)
class RelationshipDefinition:
    kind: RelationshipKind
    target: str
    foreign_key: Optional[str] = None
    source_key: str = 'id'
    through: Optional[str] = None
    other_key: Optional[str] = None
    alias: Optional[str] = None
    on_delete: Optional[str] = None
    on_update: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.kind, RelationshipKind):
            try:
                object.__setattr__(self, 'kind', RelationshipKind(self.kind))
            except ValueError:
                allowed = tuple(k.value for k in RelationshipKind)
                raise ValidationError(
                    f"Invalid relationship kind: {self.kind}. "
                    f"Must be one of: {', '.join(allowed)}",
                    value=self.kind, allowed=allowed,
                ) from None


@dataclass(frozen=True)
class TriggerDefinition:
    """Fields are optional: an entry missing name/timing/event/statements is inactive."""
    name: Optional[str] = None
    timing: Optional[str] = None
    event: Optional[str] = None
    statements: Optional[list] = None
    columns: Optional[list] = None
    condition: Optional[str] = None
    if_not_exists: bool = False


@dataclass(frozen=True)
class IndexField:
    name: str
    order: Optional[str] = None
    collate: Optional[str] = None
    expression: bool = False


@dataclass(frozen=True)
class IndexDefinition:
    fields: list = field(default_factory=list)   # str or IndexField
    unique: bool = False
    name: Optional[str] = None
    where: Optional[str] = None
    if_not_exists: bool = False


@dataclass(frozen=True)
class ConstraintDefinition:
    type: str                                    # check | unique | primary_key | foreign_key
    columns: list = field(default_factory=list)
    expression: Optional[str] = None
    references: Optional[dict] = None            # {'table': ..., 'columns': [...]}
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ViewDefinition:
    name: str
    select: str
    columns: Optional[list] = None
    temporary: bool = False
    if_not_exists: bool = False


@dataclass
class ModelHooks:
    """Six ordered callback lists. Each callback takes the affected data."""
    before_insert: list = field(default_factory=list)
    after_insert: list = field(default_factory=list)
    before_update: list = field(default_factory=list)
    after_update: list = field(default_factory=list)
    before_delete: list = field(default_factory=list)
    after_delete: list = field(default_factory=list)


@dataclass
class ModelDefinition:
    name: str
    columns: dict = field(default_factory=dict)
    table_name: Optional[str] = None
    pluralize_tablename: bool = False
    freeze_table_name: bool = False
    relationships: list = field(default_factory=list)
    indexes: list = field(default_factory=list)
    constraints: list = field(default_factory=list)
    triggers: list = field(default_factory=list)
    views: list = field(default_factory=list)
    without_rowid: bool = False
    strict: bool = False
    soft_delete: bool = False
    timestamps: bool = True
    underscored: bool = False
    if_not_exists: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_at: Optional[str] = None
    version: Any = False                 # True or column name
    hooks: ModelHooks = field(default_factory=ModelHooks)

    @classmethod
    def from_dict(cls, data: dict) -> "ModelDefinition":
        """Build from a plain literal. Accepts camelCase or snake_case keys.

        Aliases from the common ORM vocabulary are accepted too:
        attributes → columns, paranoid → soft_delete, options.triggers → triggers.
        """
        data = _snake_keys(data)
        options = _snake_keys(data.pop('options', None) or {})
        merged = {**options, **data}
        if 'attributes' in merged and 'columns' not in merged:
            merged['columns'] = merged.pop('attributes')
        if 'paranoid' in merged and 'soft_delete' not in merged:
            merged['soft_delete'] = merged.pop('paranoid')

        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in merged.items() if k in known}

        kwargs['columns'] = {
            name: _column_from(spec) for name, spec in (kwargs.get('columns') or {}).items()
        }
        kwargs['relationships'] = [_build(RelationshipDefinition, r)
                                   for r in kwargs.get('relationships') or []]
        kwargs['indexes'] = [_index_from(i) for i in kwargs.get('indexes') or []]
        kwargs['constraints'] = [_build(ConstraintDefinition, c)
                                 for c in kwargs.get('constraints') or []]
        kwargs['triggers'] = [_build(TriggerDefinition, t)
                              for t in kwargs.get('triggers') or []]
        kwargs['views'] = [_build(ViewDefinition, v) for v in kwargs.get('views') or []]
        hooks = kwargs.get('hooks')
        if isinstance(hooks, dict):
            kwargs['hooks'] = ModelHooks(**{
                k: list(v) for k, v in _snake_keys(hooks).items()
                if k in {f.name for f in fields(ModelHooks)}
            })
        return cls(**kwargs)


def _snake_keys(data: dict) -> dict:
    return {snake_case(k): v for k, v in dict(data).items()}


_COLUMN_ALIASES = {'default_value': 'default', 'collation': 'collate',
                   'generated_as': 'generated'}


def _column_from(spec) -> ColumnDefinition:
    if isinstance(spec, ColumnDefinition):
        return spec
    if isinstance(spec, str):
        return ColumnDefinition(type=spec)
    data = {_COLUMN_ALIASES.get(k, k): v for k, v in _snake_keys(spec).items()}
    return _build(ColumnDefinition, data)


def _index_from(spec) -> IndexDefinition:
    if isinstance(spec, IndexDefinition):
        return spec
    data = _snake_keys(spec)
    data['fields'] = [f if isinstance(f, (str, IndexField)) else _build(IndexField, f)
                      for f in data.get('fields') or data.pop('columns', None) or []]
    return _build(IndexDefinition, data)


def _build(cls, spec):
    if isinstance(spec, cls):
        return spec
    data = _snake_keys(spec)
    if cls is RelationshipDefinition:
        if 'type' in data and 'kind' not in data:
            data['kind'] = data.pop('type')
        if 'target_model' in data and 'target' not in data:
            data['target'] = data.pop('target_model')
        if 'as' in data:
            data['alias'] = data.pop('as')
        if isinstance(data.get('kind'), str):
            data['kind'] = snake_case(data['kind'])
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


# ═══════════════════════════════════════════════════════════════════════════════
# RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ResolvedModel:
    """Fully-populated model record. Built once by resolve_model()."""
    name: str
    table_name: str
    columns: dict                       # column name → ColumnDefinition, DDL order
    field_map: dict                     # attribute name → column name
    primary_key: str
    created_at: Optional[str]
    updated_at: Optional[str]
    deleted_at: Optional[str]
    version: Optional[str]
    definition: ModelDefinition

    @property
    def column_names(self) -> list:
        return list(self.columns)

    def column_for(self, key: str) -> str:
        """Column name for an attribute or column key."""
        return self.field_map.get(key, key)


def resolve_table_name(definition: ModelDefinition) -> str:
    """Explicit table_name or pluralize_tablename → name + 's'; else model name.

    freeze_table_name keeps an explicit table_name literal unless
    pluralize_tablename asks for the plural.
    """
    if definition.pluralize_tablename:
        return f"{definition.table_name or definition.name}s"
    if definition.table_name and definition.freeze_table_name:
        return definition.table_name
    if definition.table_name:
        return f"{definition.table_name}s"
    return definition.name


def resolve_model(definition: ModelDefinition) -> ResolvedModel:
    """Resolve a definition into a ResolvedModel. Pure: the definition is not mutated."""
    if not definition.name:
        raise ValidationError("Model definition requires a name", value=definition.name)
    validate_identifier(definition.name, "model name")
    table_name = validate_identifier(resolve_table_name(definition), "table name")

    definition = replace(
        definition,
        columns={a: _column_from(c) for a, c in definition.columns.items()},
        relationships=[_build(RelationshipDefinition, r) for r in definition.relationships],
        indexes=[_index_from(i) for i in definition.indexes],
        constraints=[_build(ConstraintDefinition, c) for c in definition.constraints],
        triggers=[_build(TriggerDefinition, t) for t in definition.triggers],
        views=[_build(ViewDefinition, v) for v in definition.views],
        hooks=ModelHooks(**{f.name: list(getattr(definition.hooks, f.name))
                            for f in fields(ModelHooks)}),
    )

    columns = {}
    field_map = {}
    for attr, col in definition.columns.items():
        col_name = snake_case(attr) if definition.underscored else attr
        validate_identifier(col_name, f"column name in {definition.name}")
        if (col.on_delete or col.on_update) and not col.references:
            raise ValidationError(
                f"on_delete/on_update requires references for column {attr} "
                f"in {definition.name}", value=attr)
        for action in (col.on_delete, col.on_update):
            if action and action.upper() not in REFERENTIAL_ACTIONS:
                raise ValidationError(
                    f"Invalid referential action: {action}. "
                    f"Must be one of: {', '.join(REFERENTIAL_ACTIONS)}",
                    value=action, allowed=REFERENTIAL_ACTIONS)
        columns[col_name] = col
        field_map[attr] = col_name

    flagged = [name for name, col in columns.items() if col.primary_key]
    if len(flagged) > 1:
        raise ValidationError(
            f"Model {definition.name} flags more than one primary key column: "
            f"{', '.join(flagged)}. Use a primary_key constraint for composite keys.",
            value=flagged)

    table_pk = any(c.type == 'primary_key' for c in definition.constraints)
    if not flagged and 'id' not in columns and not table_pk:
        synthetic_id = ColumnDefinition(
            type='INTEGER', primary_key=True,
            auto_increment=not definition.without_rowid)
        columns = {'id': synthetic_id, **columns}
        field_map = {'id': 'id', **field_map}
    primary_key = flagged[0] if flagged else 'id'

    def synth(override, camel):
        name = override or (snake_case(camel) if definition.underscored else camel)
        return validate_identifier(name, "column name")

    created_at = updated_at = deleted_at = version = None
    if definition.timestamps:
        created_at = synth(definition.created_at, 'createdAt')
        updated_at = synth(definition.updated_at, 'updatedAt')
        for name in (created_at, updated_at):
            if name not in columns:
                columns[name] = ColumnDefinition(
                    type='DATE', allow_null=False, default_expression=ISO_NOW)
                field_map[name] = name
    if definition.soft_delete:
        deleted_at = synth(definition.deleted_at, 'deletedAt')
        if deleted_at not in columns:
            columns[deleted_at] = ColumnDefinition(type='DATE', allow_null=True)
            field_map[deleted_at] = deleted_at
    if definition.version:
        version = synth(definition.version if isinstance(definition.version, str) else None,
                        'version')
        if version not in columns:
            columns[version] = ColumnDefinition(type='INTEGER', allow_null=False, default=0)
            field_map[version] = version

    # camelCase spellings of synthetic columns still resolve when underscored
    if definition.underscored:
        for camel, name in (('createdAt', created_at), ('updatedAt', updated_at),
                            ('deletedAt', deleted_at)):
            if name:
                field_map.setdefault(camel, name)

    return ResolvedModel(
        name=definition.name,
        table_name=table_name,
        columns=columns,
        field_map=field_map,
        primary_key=primary_key,
        created_at=created_at,
        updated_at=updated_at,
        deleted_at=deleted_at,
        version=version,
        definition=definition,
    )
