"""
Translation of generation domain errors into HTTP responses.
"""
from fastapi import HTTPException, status

from app.services.exceptions import (
    GenerationError,
    InsufficientCredits,
    InvalidRequest,
    MigrationFailed,
    NotFound,
    ProviderUnavailable,
    Unauthorized,
)

STATUS_CODES = {
    InvalidRequest: status.HTTP_400_BAD_REQUEST,
    InsufficientCredits: status.HTTP_402_PAYMENT_REQUIRED,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    ProviderUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    MigrationFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(error: GenerationError) -> HTTPException:
    """HTTPException for a domain error; unknown subclasses become 500."""
    if isinstance(error, InsufficientCredits):
        return HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "message": error.message,
                "required": error.required,
                "available": error.available,
            },
        )

    for error_type, status_code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.message)

    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.message)
