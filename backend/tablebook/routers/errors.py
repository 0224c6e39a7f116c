from fastapi import HTTPException, status

from ..domain.errors import (
    BookingNotFoundError,
    CancelNotAllowedError,
    DomainError,
    PaymentNotAllowedError,
    SettingsRejectedError,
    VersionConflictError,
)

_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (BookingNotFoundError, status.HTTP_404_NOT_FOUND),
    (CancelNotAllowedError, status.HTTP_409_CONFLICT),
    (VersionConflictError, status.HTTP_409_CONFLICT),
    (PaymentNotAllowedError, status.HTTP_409_CONFLICT),
)


def to_http_exception(exc: DomainError) -> HTTPException:
    """Map an engine error onto the HTTP status the API reports for it."""
    if isinstance(exc, SettingsRejectedError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "settings rejected", "violations": exc.violations},
        )
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    # ValidationError and anything else raised from malformed input
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
