"""
Strata types — logical type → storage class, Python value → storable value.

Two fixed tables, no guessing:
- map_type()     logical type name → SQLite storage keyword
- coerce()       in-memory value → something sqlite3 can bind
- format_default() value → literal for a DEFAULT clause

coerce() dispatches over a closed set of value shapes (ValueShape). Every
value lands in exactly one shape; SCALAR is the fallback.
"""

import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

import numpy as np

from strata.errors import TypeLookupError


# Logical type → storage class. Storage keywords map to themselves.
STORAGE_CLASSES = {
    'STRING': 'TEXT',
    'CHAR': 'TEXT',
    'TEXT': 'TEXT',
    'CITEXT': 'TEXT',
    'VARCHAR': 'TEXT',
    'UUID': 'TEXT',
    'ENUM': 'TEXT',
    'INTEGER': 'INTEGER',
    'INT': 'INTEGER',
    'BIGINT': 'INTEGER',
    'SMALLINT': 'INTEGER',
    'MEDIUMINT': 'INTEGER',
    'TINYINT': 'INTEGER',
    'BOOLEAN': 'INTEGER',
    'FLOAT': 'REAL',
    'DOUBLE': 'REAL',
    'DECIMAL': 'REAL',
    'REAL': 'REAL',
    'NUMERIC': 'NUMERIC',
    'DATE': 'TEXT',
    'DATEONLY': 'TEXT',
    'TIME': 'TEXT',
    'DATETIME': 'TEXT',
    'TIMESTAMP': 'TEXT',
    'JSON': 'TEXT',
    'JSONB': 'TEXT',
    'ARRAY': 'TEXT',
    'BLOB': 'BLOB',
    'BINARY': 'BLOB',
    'ANY': 'ANY',
}

# Storage classes a STRICT table accepts
STRICT_STORAGE_CLASSES = {'INTEGER', 'REAL', 'TEXT', 'BLOB', 'ANY'}


def map_type(logical_type: str) -> str:
    """Storage keyword for a logical type. Case-insensitive.

    Raises TypeLookupError for anything not in STORAGE_CLASSES.
    """
    if not isinstance(logical_type, str):
        raise TypeLookupError(logical_type)
    try:
        return STORAGE_CLASSES[logical_type.strip().upper()]
    except KeyError:
        raise TypeLookupError(logical_type) from None


# ═══════════════════════════════════════════════════════════════════════════════
# VALUE COERCION
# ═══════════════════════════════════════════════════════════════════════════════

class ValueShape(Enum):
    """Recognized shapes of an in-memory value."""
    NULL = "null"
    BOOLEAN = "boolean"
    TEMPORAL = "temporal"
    BINARY = "binary"
    STRUCTURED = "structured"
    SCALAR = "scalar"


def classify(value) -> ValueShape:
    """Shape of a value. bool is checked before int (bool subclasses int)."""
    if value is None:
        return ValueShape.NULL
    if isinstance(value, (bool, np.bool_)):
        return ValueShape.BOOLEAN
    if isinstance(value, (datetime, date, time, np.datetime64)):
        return ValueShape.TEMPORAL
    if isinstance(value, (bytes, bytearray, memoryview, np.ndarray)):
        return ValueShape.BINARY
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        return ValueShape.STRUCTURED
    return ValueShape.SCALAR


def coerce(value):
    """Convert a value to an engine-storable representation.

    null → None, bool → 0/1, date/time → ISO-8601 text, bytes → unchanged,
    ndarray → raw bytes, dict/list → JSON text, numpy scalar → Python scalar.
    """
    shape = classify(value)
    if shape is ValueShape.NULL:
        return None
    if shape is ValueShape.BOOLEAN:
        return 1 if value else 0
    if shape is ValueShape.TEMPORAL:
        if isinstance(value, np.datetime64):
            return str(np.datetime_as_string(value))
        return value.isoformat()
    if shape is ValueShape.BINARY:
        if isinstance(value, np.ndarray):
            return value.tobytes()
        return value
    if shape is ValueShape.STRUCTURED:
        if isinstance(value, (set, frozenset)):
            value = sorted(value, key=str)
        return json.dumps(value, default=str)

    # SCALAR
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, Enum):
        return coerce(value.value)
    return value


def format_default(value) -> str:
    """Literal for a DEFAULT clause. Strings are single-quoted and escaped."""
    stored = coerce(value)
    if stored is None:
        return 'NULL'
    if isinstance(stored, str):
        return "'" + stored.replace("'", "''") + "'"
    if isinstance(stored, (bytes, bytearray, memoryview)):
        return f"X'{bytes(stored).hex()}'"
    return str(stored)
