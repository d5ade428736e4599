from typing import Any, Callable

from fastapi import HTTPException

from db.store import Store
from services.deadline_context import operation_timeout
from services.errors import (
    DeadlineExceededError,
    DoseJournalError,
    FetchError,
    NotFoundError,
    ResourceLimitError,
    SemanticError,
    StoreError,
    ValidationError,
)

# Checked in order, the first matching category wins.
STATUS_BY_CATEGORY: list[tuple[type[DoseJournalError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ResourceLimitError, 409),
    (SemanticError, 422),
    (FetchError, 502),
    (StoreError, 503),
    (DeadlineExceededError, 504),
]


def status_for(exc: DoseJournalError) -> int:
    for category, status in STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status
    return 500


def http_error(exc: DoseJournalError) -> HTTPException:
    return HTTPException(
        status_code=status_for(exc),
        detail={"error": type(exc).__name__, "component": exc.component, "message": str(exc)},
    )


def call_service(store: Store, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run one service call under the configured timeout, errors become HTTP errors."""
    try:
        with operation_timeout(store.settings.TIMEOUT):
            return func(store, *args, **kwargs)
    except DoseJournalError as exc:
        raise http_error(exc) from exc
