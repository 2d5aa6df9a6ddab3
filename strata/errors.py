"""
Strata errors — one class per failure kind.

Every error carries a `kind` so callers can tell a validation failure
(caller's data is wrong) from a lookup failure (mapping gap) without
matching on messages. Driver errors (sqlite3.Error) are never wrapped.
"""


class StrataError(Exception):
    """Base class for all strata errors."""

    kind = "error"


class ValidationError(StrataError, ValueError):
    """Caller-supplied definition or request is invalid."""

    kind = "validation"

    def __init__(self, message: str, value=None, allowed: tuple = ()):
        super().__init__(message)
        self.value = value
        self.allowed = tuple(allowed)


class TypeLookupError(StrataError, LookupError):
    """Logical column type has no storage-class mapping."""

    kind = "lookup"

    def __init__(self, logical_type):
        super().__init__(f"Unknown logical type: {logical_type!r}")
        self.logical_type = logical_type


class HookExecutionError(StrataError):
    """A lifecycle hook raised. The original exception is __cause__."""

    kind = "hook"

    def __init__(self, message: str, hook=None):
        super().__init__(f"Hook execution failed: {message}")
        self.hook = hook
