"""
Strata Test Fixtures

In-memory databases and model literals shared across the suite.
Async CRUD is driven with asyncio.run; no plugin needed.

Run with: pytest tests/ -v
"""
import sqlite3

import pytest

from strata.config import DatabaseOptions
from strata.database import Database


# =============================================================================
# MODEL LITERALS
# =============================================================================

USER_MODEL = {
    'name': 'User',
    'tableName': 'user',
    'columns': {
        'email': {'type': 'STRING', 'allowNull': False, 'unique': True},
        'name': 'STRING',
        'age': 'INTEGER',
        'active': {'type': 'BOOLEAN', 'defaultValue': True},
    },
}

POST_MODEL = {
    'name': 'Post',
    'pluralizeTablename': True,
    'columns': {
        'title': {'type': 'STRING', 'allowNull': False},
        'body': 'TEXT',
        'userId': 'INTEGER',
    },
    'relationships': [
        {'type': 'belongsTo', 'target': 'User', 'foreignKey': 'userId', 'onDelete': 'cascade'},
    ],
    'options': {'paranoid': True},
}


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def memdb():
    """Bare in-memory sqlite connection, sqlite3.Row rows."""
    conn = sqlite3.connect(':memory:', isolation_level=None)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def options():
    return DatabaseOptions(journal_mode='MEMORY', log_ops=True)


@pytest.fixture
def db(options):
    """Empty in-memory Database with _ops logging on."""
    database = Database(':memory:', options)
    yield database
    database.close()


@pytest.fixture
def blog(db):
    """Database with User and Post defined."""
    db.define(USER_MODEL)
    db.define(POST_MODEL)
    return db
