from fastapi import HTTPException, status

from community_analytics.constants import ErrorCode


class CustomException(HTTPException):
    """Base class for custom exceptions."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        code: str = "error",
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.code = code


class NotFoundError(CustomException):
    """Raised when a resource is not found."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            code=ErrorCode.NOT_FOUND,
        )


class NoActiveModelError(CustomException):
    """Raised when a prediction needs an active model and none exists."""

    def __init__(self, model_type: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active model found for type: {model_type}",
            code=ErrorCode.NO_ACTIVE_MODEL,
        )
        self.model_type = model_type


class PersistenceError(CustomException):
    """Raised when the analytics store cannot be read or written."""

    def __init__(self, detail: str = "Analytics store operation failed"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            code=ErrorCode.PERSISTENCE_ERROR,
        )


class ValidationError(CustomException):
    """Raised when a request names an unsupported option."""

    def __init__(self, detail: str = "Invalid request"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            code=ErrorCode.VALIDATION_ERROR,
        )
