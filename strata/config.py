"""
Strata configuration — env-var defaults, resolved once per Database.

    STRATA_JOURNAL_MODE   PRAGMA journal_mode (default WAL)
    STRATA_BUSY_TIMEOUT   PRAGMA busy_timeout in ms (default 5000)
    STRATA_VERBOSE        1 → diagnostics on stderr
    STRATA_LOG_OPS        1 → record DDL and writes in _ops
"""

import os
from dataclasses import dataclass

from strata.errors import ValidationError

JOURNAL_MODES = ('DELETE', 'TRUNCATE', 'PERSIST', 'MEMORY', 'WAL', 'OFF')

STRATA_JOURNAL_MODE = os.environ.get("STRATA_JOURNAL_MODE", "WAL")
STRATA_BUSY_TIMEOUT = int(os.environ.get("STRATA_BUSY_TIMEOUT", "5000"))
STRATA_VERBOSE = os.environ.get("STRATA_VERBOSE", "") not in ("", "0")
STRATA_LOG_OPS = os.environ.get("STRATA_LOG_OPS", "") not in ("", "0")


@dataclass(frozen=True)
class DatabaseOptions:
    """Connection-level settings for a Database."""

    journal_mode: str = "WAL"
    busy_timeout: int = 5000
    foreign_keys: bool = True
    verbose: bool = False
    log_ops: bool = False

    def __post_init__(self):
        mode = str(self.journal_mode).upper()
        if mode not in JOURNAL_MODES:
            raise ValidationError(
                f"Invalid journal mode: {self.journal_mode}. "
                f"Must be one of: {', '.join(JOURNAL_MODES)}",
                value=self.journal_mode, allowed=JOURNAL_MODES,
            )
        object.__setattr__(self, 'journal_mode', mode)

    @classmethod
    def from_env(cls, **overrides) -> "DatabaseOptions":
        """Options from STRATA_* variables; keyword overrides win."""
        values = {
            'journal_mode': STRATA_JOURNAL_MODE,
            'busy_timeout': STRATA_BUSY_TIMEOUT,
            'verbose': STRATA_VERBOSE,
            'log_ops': STRATA_LOG_OPS,
        }
        values.update(overrides)
        return cls(**values)
