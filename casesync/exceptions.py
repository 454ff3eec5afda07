"""
Custom exceptions and error handlers
"""

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Validation error exception (missing identifier, empty body)"""

    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(HTTPException):
    """Not found error exception"""

    def __init__(self, detail: str = "Endpoint not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
