"""
CREATE TRIGGER generation.

    CREATE TRIGGER [IF NOT EXISTS] <name> <TIMING> <EVENT> [OF <columns>]
        ON <table> [WHEN <condition>] BEGIN <statements> END

The column list sits between the event and ON, where SQLite's grammar
expects it; it is only emitted for UPDATE.

An entry missing name, timing, event or statements is inactive and skipped.
Timing and event are case-insensitive on input, upper-cased on output; any
other value aborts generation for the whole model.
"""

from strata.errors import ValidationError
from strata.model import ResolvedModel, TriggerDefinition

TIMINGS = ('BEFORE', 'AFTER', 'INSTEAD OF')
EVENTS = ('INSERT', 'UPDATE', 'DELETE')


def _normalize(value: str, allowed: tuple, what: str) -> str:
    normalized = ' '.join(str(value).split()).upper()
    if normalized not in allowed:
        raise ValidationError(
            f"Invalid trigger {what}: {value}. Must be one of: {', '.join(allowed)}",
            value=value, allowed=allowed,
        )
    return normalized


def validate_timing(timing: str) -> str:
    return _normalize(timing, TIMINGS, 'timing')


def validate_event(event: str) -> str:
    return _normalize(event, EVENTS, 'event')


def is_active(trigger: TriggerDefinition) -> bool:
    return bool(trigger.name and trigger.timing and trigger.event) \
        and trigger.statements is not None


def build_trigger_sql(table_name: str, trigger: TriggerDefinition) -> str:
    timing = validate_timing(trigger.timing)
    event = validate_event(trigger.event)
    exists = 'IF NOT EXISTS ' if trigger.if_not_exists else ''

    sql = f"CREATE TRIGGER {exists}{trigger.name} {timing} {event} "
    if event == 'UPDATE' and trigger.columns:
        sql += f"OF {', '.join(trigger.columns)} "
    sql += f"ON {table_name} "
    if trigger.condition:
        sql += f"WHEN {trigger.condition} "

    statements = trigger.statements
    if isinstance(statements, str):
        statements = [statements]
    body = []
    for stmt in statements:
        stmt = stmt.strip().rstrip(';').rstrip()
        if stmt:
            body.append(f"{stmt};")
    if not body:
        return sql + 'BEGIN END'
    return sql + f"BEGIN {' '.join(body)} END"


def generate_trigger_sql(model: ResolvedModel) -> list[str]:
    """One CREATE TRIGGER per active trigger entry, declaration order."""
    return [
        build_trigger_sql(model.table_name, t)
        for t in model.definition.triggers
        if is_active(t)
    ]
