from __future__ import annotations

from typing import Mapping, NoReturn, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


# PUBLIC_INTERFACE
def pg_error_details(exc: BaseException) -> Tuple[Optional[str], Optional[str]]:
    """
    Return (sqlstate, constraint_name) for a database error.

    SQLAlchemy wraps the driver error in `exc.orig`; with asyncpg the original
    asyncpg exception (carrying sqlstate and constraint_name) is chained as its cause.
    """
    orig = getattr(exc, "orig", None) or exc
    cause = getattr(orig, "__cause__", None)
    code = (
        getattr(orig, "pgcode", None)
        or getattr(orig, "sqlstate", None)
        or getattr(cause, "sqlstate", None)
    )
    constraint = getattr(cause, "constraint_name", None) or getattr(orig, "constraint_name", None)
    return code, constraint


# PUBLIC_INTERFACE
def raise_for_unique_violation(
    exc: IntegrityError,
    messages: Mapping[str, str],
    default: Optional[str] = None,
) -> NoReturn:
    """
    Translate a unique or foreign-key violation into an HTTPException.

    `messages` maps constraint names to the 409 message for that constraint.
    Anything unrecognised is re-raised so the global handler can deal with it.
    """
    code, constraint = pg_error_details(exc)
    if code == UNIQUE_VIOLATION:
        if constraint and constraint in messages:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=messages[constraint]) from exc
        if default:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=default) from exc
    if code == FOREIGN_KEY_VIOLATION and constraint and constraint in messages:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=messages[constraint]) from exc
    raise exc
