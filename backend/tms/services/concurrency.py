# Overview: Row locking and optimistic version checks shared by the write services.

from __future__ import annotations

from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def check_expected_version(row, expected_version) -> None:
    """
    Compare the caller's version against the row loaded in this transaction.

    The ORM repeats the comparison on flush (version_id_col), so a writer that
    commits between this check and our UPDATE still surfaces as StaleDataError.
    """
    if expected_version is None:
        return
    try:
        expected = int(expected_version)
    except (TypeError, ValueError):
        raise ConflictError()
    if row.version_id != expected:
        raise ConflictError()

