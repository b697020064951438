"""Translation of service errors into HTTP errors."""

from fastapi import HTTPException, status

from backoffice.core.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
)


def to_http_error(e: ValueError) -> HTTPException:
    """Map a business error raised by a service to an HTTPException."""
    if isinstance(e, InsufficientStockError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(e),
                "shortages": [
                    {
                        "material_id": s.material_id,
                        "material_name": s.material_name,
                        "required": s.required,
                        "available": s.available,
                    }
                    for s in e.shortages
                ],
            },
        )
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
