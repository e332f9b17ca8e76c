# idealplots/core/exceptions.py
"""
Engine-level error taxonomy.

Workflow operations raise these and never HTTPException; the API layer maps
them onto the JSON envelope using `status_code` and `code`.
"""

from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError


class EngineError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(EngineError):
    status_code = 422
    code = "validation_error"


class AuthorizationError(EngineError):
    status_code = 403
    code = "authorization_error"


class NotFoundError(EngineError, LookupError):
    status_code = 404
    code = "not_found"


class DuplicateKeyError(EngineError):
    status_code = 409
    code = "duplicate_key"


class ForeignKeyViolationError(EngineError):
    status_code = 409
    code = "foreign_key_violation"


class CheckViolationError(EngineError):
    status_code = 422
    code = "check_violation"


class StateTransitionError(EngineError):
    status_code = 409
    code = "state_transition"


class OperationTimeoutError(EngineError):
    status_code = 504
    code = "timeout"


class TransientError(EngineError):
    status_code = 503
    code = "transient"


class TicketCollisionError(TransientError):
    code = "ticket_collision"


class FatalError(EngineError):
    status_code = 503
    code = "fatal"


class PoolClosedError(FatalError):
    code = "pool_closed"


# --- SQLSTATE classes (PostgreSQL) ---
_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"
_CHECK_VIOLATION = "23514"
_NOT_NULL_VIOLATION = "23502"
_TRANSIENT_STATES = {"40001", "40P01", "57P01", "08000", "08003", "08006"}


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_integrity_error(exc: IntegrityError) -> EngineError:
    """Map a driver integrity error onto the most specific engine error."""
    state = _sqlstate(exc)
    text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    details = {"constraint": text}

    if state == _UNIQUE_VIOLATION or "unique" in text or "duplicate key" in text:
        return DuplicateKeyError("Duplicate value violates a unique constraint", details=details)
    if state == _FOREIGN_KEY_VIOLATION or "foreign key" in text:
        return ForeignKeyViolationError("Referenced record does not exist", details=details)
    if state == _CHECK_VIOLATION or "check constraint" in text:
        return CheckViolationError("Value violates a check constraint", details=details)
    if state == _NOT_NULL_VIOLATION or "not null" in text:
        return ValidationError("Required value is missing", details=details)
    return EngineError("Integrity error", details=details)


def is_duplicate_on(exc: IntegrityError, column: str) -> bool:
    """True when `exc` is a unique violation mentioning `column`."""
    translated = translate_integrity_error(exc)
    return isinstance(translated, DuplicateKeyError) and column in translated.details["constraint"]


def is_transient_dbapi_error(exc: DBAPIError) -> bool:
    if exc.connection_invalidated:
        return True
    if _sqlstate(exc) in _TRANSIENT_STATES:
        return True
    text = str(exc.orig).lower() if exc.orig is not None else ""
    return "deadlock" in text or "database is locked" in text or ("connection" in text and "closed" in text)
