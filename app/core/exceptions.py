"""
Error kinds raised by the permission engine.

Each kind is an HTTPException so services can raise it directly and the API
layer reports it with the matching status code.
"""

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """A referenced tenant, membership, bundle or definition does not exist."""

    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class InvalidReferenceError(HTTPException):
    """A write names permission keys that are not in the definition registry."""

    def __init__(self, detail: str = "Invalid permission reference", invalid_keys=None):
        self.invalid_keys = sorted(invalid_keys or [])
        if self.invalid_keys:
            detail = f"{detail}: {', '.join(self.invalid_keys)}"
        super().__init__(status_code=422, detail=detail)


class UnauthenticatedError(HTTPException):
    """No resolvable identity or membership."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class UnauthorizedError(HTTPException):
    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


def store_error(e: Exception) -> HTTPException:
    """Wrap a store-level failure; domain errors pass through untouched."""
    if isinstance(e, HTTPException):
        return e
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
