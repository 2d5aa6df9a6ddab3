"""
Column value validation — per-column `validate` rules, checked before writes.

Rules (camelCase or snake_case keys):
  is_email, is_url, is_ip, is_alpha, is_alphanumeric   string shape
  is_numeric, is_int, is_float                          numeric shape
  len: [min, max]                                       length of value
  min, max                                              numeric bounds
  is_in, not_in                                         membership

A rule is True, its argument, or {'args': ..., 'msg': ...} to override the
message. False or None disables it. A None value is checked against
allow_null only.
"""

import math
import re
from typing import Optional

from strata.errors import ValidationError
from strata.model import ColumnDefinition, snake_case

_EMAIL = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_URL = re.compile(r'^https?://[^\s/$.?#].[^\s]*$')
_IP = re.compile(r'^(\d{1,3}\.){3}\d{1,3}$')
_ALPHA = re.compile(r'^[a-zA-Z]+$')
_ALPHANUMERIC = re.compile(r'^[a-zA-Z0-9]+$')

_PATTERNS = {
    'is_email': (_EMAIL, 'Must be a valid email'),
    'is_url': (_URL, 'Must be a valid URL'),
    'is_ip': (_IP, 'Must be a valid IP address'),
    'is_alpha': (_ALPHA, 'Must contain only letters'),
    'is_alphanumeric': (_ALPHANUMERIC, 'Must contain only letters and numbers'),
}


def _args(rule):
    return rule.get('args', True) if isinstance(rule, dict) else rule


def _message(rule, default: str) -> str:
    if isinstance(rule, dict) and rule.get('msg'):
        return rule['msg']
    return default


def _number(value) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(n) else n


def _length(value) -> int:
    if isinstance(value, (str, list, tuple, bytes)):
        return len(value)
    return len(str(value))


def check_value(value, column: ColumnDefinition) -> list[str]:
    """Error messages for one value against one column; empty when it passes."""
    if value is None:
        if column.allow_null or column.primary_key:
            return []
        return ['Value cannot be null']
    rules = {snake_case(k): v for k, v in (column.validate or {}).items()
             if v is not None and v is not False}
    errors = []

    for name, (pattern, default) in _PATTERNS.items():
        if name in rules and not (isinstance(value, str) and pattern.match(value)):
            errors.append(_message(rules[name], default))

    n = _number(value)
    if 'is_numeric' in rules and n is None:
        errors.append(_message(rules['is_numeric'], 'Must be a number'))
    if 'is_int' in rules and (n is None or not n.is_integer()):
        errors.append(_message(rules['is_int'], 'Must be an integer'))
    if 'is_float' in rules and (n is None or n.is_integer()):
        errors.append(_message(rules['is_float'], 'Must be a float'))
    if 'min' in rules and (n is None or n < _args(rules['min'])):
        errors.append(_message(rules['min'], f"Must be at least {_args(rules['min'])}"))
    if 'max' in rules and (n is None or n > _args(rules['max'])):
        errors.append(_message(rules['max'], f"Must be at most {_args(rules['max'])}"))

    if 'len' in rules:
        bounds = _args(rules['len'])
        low, high = bounds if isinstance(bounds, (list, tuple)) else (0, math.inf)
        if not low <= _length(value) <= high:
            errors.append(_message(rules['len'], f"Length must be between {low} and {high}"))

    if 'is_in' in rules and value not in (_args(rules['is_in']) or []):
        errors.append(_message(rules['is_in'], 'Value is not in allowed list'))
    if 'not_in' in rules and value in (_args(rules['not_in']) or []):
        errors.append(_message(rules['not_in'], 'Value is not allowed'))
    return errors


def validate_row(model_name: str, columns: dict, row: dict) -> None:
    """Raise ValidationError listing every failing field in a column-keyed row."""
    errors = []
    for name, value in row.items():
        column = columns.get(name)
        if column is None:
            continue
        problems = check_value(value, column)
        if problems:
            errors.append(f"Field '{name}': {', '.join(problems)}")
    if errors:
        raise ValidationError(
            f"Validation failed for {model_name}: " + "; ".join(errors), value=row)
