"""
Tests for strata.ddl.triggers — CREATE TRIGGER generation.

Run with: pytest tests/test_triggers.py -v
"""
import pytest

from strata.ddl.triggers import (
    EVENTS, TIMINGS, build_trigger_sql, generate_trigger_sql, validate_event, validate_timing,
)
from strata.errors import ValidationError
from strata.model import ModelDefinition, TriggerDefinition, resolve_model

pytestmark = [pytest.mark.unit]


def _triggers(*triggers, name='users'):
    return generate_trigger_sql(resolve_model(
        ModelDefinition(name=name, timestamps=False, triggers=list(triggers))))


class TestTriggerSQL:

    def test_full_statement(self):
        sql = build_trigger_sql('users', TriggerDefinition(
            name='users_audit', timing='after', event='update', columns=['email', 'name'],
            condition='OLD.email != NEW.email', if_not_exists=True,
            statements=['INSERT INTO audit (user_id) VALUES (NEW.id)'],
        ))
        assert sql == (
            "CREATE TRIGGER IF NOT EXISTS users_audit AFTER UPDATE OF email, name "
            "ON users WHEN OLD.email != NEW.email "
            "BEGIN INSERT INTO audit (user_id) VALUES (NEW.id); END"
        )

    def test_statements_trimmed_single_terminator(self):
        sql = build_trigger_sql('t', TriggerDefinition(
            name='x', timing='BEFORE', event='DELETE',
            statements=['  SELECT 1;;  ', 'SELECT 2', 'SELECT 3 ; ']))
        assert sql.endswith('BEGIN SELECT 1; SELECT 2; SELECT 3; END')

    def test_single_string_statement(self):
        sql = build_trigger_sql('t', TriggerDefinition(
            name='x', timing='AFTER', event='INSERT', statements='SELECT 1'))
        assert sql.endswith('BEGIN SELECT 1; END')

    def test_empty_statement_list_emits_empty_block(self):
        sql = build_trigger_sql('t', TriggerDefinition(
            name='x', timing='AFTER', event='INSERT', statements=[]))
        assert sql == 'CREATE TRIGGER x AFTER INSERT ON t BEGIN END'

    def test_of_columns_only_for_update(self):
        sql = build_trigger_sql('t', TriggerDefinition(
            name='x', timing='AFTER', event='INSERT', columns=['a'], statements=['SELECT 1']))
        assert ' OF ' not in sql

    def test_of_columns_omitted_when_empty(self):
        sql = build_trigger_sql('t', TriggerDefinition(
            name='x', timing='AFTER', event='UPDATE', columns=[], statements=['SELECT 1']))
        assert sql == 'CREATE TRIGGER x AFTER UPDATE ON t BEGIN SELECT 1; END'

    @pytest.mark.parametrize("timing,event", [
        ('before', 'insert'), ('After', 'Update'), ('instead of', 'delete'),
        ('INSTEAD  OF', 'DELETE'),
    ])
    def test_case_normalized(self, timing, event):
        sql = build_trigger_sql('t', TriggerDefinition(
            name='x', timing=timing, event=event, statements=['SELECT 1']))
        assert f" {validate_timing(timing)} {event.upper()} ON t " in sql
        assert validate_timing(timing) in TIMINGS
        assert validate_event(event) in EVENTS


class TestValidation:

    def test_invalid_timing_fails(self):
        with pytest.raises(ValidationError) as exc:
            _triggers(TriggerDefinition(name='x', timing='WHEN', event='INSERT',
                                        statements=['SELECT 1']))
        assert 'WHEN' in str(exc.value)
        assert 'BEFORE, AFTER, INSTEAD OF' in str(exc.value)
        assert exc.value.value == 'WHEN'
        assert exc.value.allowed == TIMINGS
        assert exc.value.kind == 'validation'

    def test_invalid_event_fails(self):
        with pytest.raises(ValidationError) as exc:
            _triggers(TriggerDefinition(name='x', timing='AFTER', event='SELECT',
                                        statements=['SELECT 1']))
        assert exc.value.allowed == EVENTS

    def test_invalid_entry_aborts_whole_definition(self):
        good = TriggerDefinition(name='a', timing='AFTER', event='INSERT', statements=['SELECT 1'])
        bad = TriggerDefinition(name='b', timing='DURING', event='INSERT', statements=['SELECT 1'])
        with pytest.raises(ValidationError):
            _triggers(good, bad)


class TestInactiveEntries:

    def test_missing_statements_skipped(self):
        assert _triggers(TriggerDefinition(name='x', timing='AFTER', event='INSERT')) == []

    @pytest.mark.parametrize("missing", ['name', 'timing', 'event'])
    def test_missing_field_skipped(self, missing):
        fields = dict(name='x', timing='AFTER', event='INSERT', statements=['SELECT 1'])
        fields[missing] = None
        assert _triggers(TriggerDefinition(**fields)) == []

    def test_inactive_entry_not_validated(self):
        assert _triggers(TriggerDefinition(name='x', timing='WHEN', event='INSERT')) == []

    def test_declaration_order(self):
        out = _triggers(
            TriggerDefinition(name='first', timing='AFTER', event='INSERT', statements=['SELECT 1']),
            TriggerDefinition(name='skipped'),
            TriggerDefinition(name='second', timing='BEFORE', event='DELETE', statements=['SELECT 2']),
        )
        assert [s.split()[2] for s in out] == ['first', 'second']


class TestExecutes:

    def test_trigger_fires(self, memdb):
        memdb.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT)")
        memdb.execute("CREATE TABLE audit (user_id INTEGER, email TEXT)")
        for sql in _triggers(TriggerDefinition(
                name='users_audit', timing='after', event='update', columns=['email'],
                condition='OLD.email IS NOT NEW.email',
                statements=['INSERT INTO audit VALUES (NEW.id, NEW.email)'])):
            memdb.execute(sql)
        memdb.execute("INSERT INTO users VALUES (1, 'a')")
        memdb.execute("UPDATE users SET email = 'b' WHERE id = 1")
        memdb.execute("UPDATE users SET email = 'b' WHERE id = 1")
        rows = memdb.execute("SELECT * FROM audit").fetchall()
        assert [tuple(r) for r in rows] == [(1, 'b')]

    def test_update_of_ignores_other_columns(self, memdb):
        memdb.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT, name TEXT)")
        memdb.execute("CREATE TABLE audit (user_id INTEGER)")
        for sql in _triggers(TriggerDefinition(
                name='email_changed', timing='AFTER', event='UPDATE', columns=['email'],
                statements=['INSERT INTO audit VALUES (NEW.id)'])):
            memdb.execute(sql)
        memdb.execute("INSERT INTO users VALUES (1, 'a', 'x')")
        memdb.execute("UPDATE users SET name = 'y' WHERE id = 1")
        assert memdb.execute("SELECT COUNT(*) FROM audit").fetchone()[0] == 0
        memdb.execute("UPDATE users SET email = 'b' WHERE id = 1")
        assert memdb.execute("SELECT COUNT(*) FROM audit").fetchone()[0] == 1
