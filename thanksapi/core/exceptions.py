from fastapi import HTTPException, status
from typing import Optional, Dict, Any

class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message

class AuthenticationError(BaseAPIException):
    """Authentication related errors"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details
        )

class AuthorizationError(BaseAPIException):
    """Authorization related errors"""
    def __init__(self, message: str = "Access forbidden", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details
        )

class ValidationError(BaseAPIException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )

class SelfAppreciationError(BaseAPIException):
    """Sender and recipient are the same account"""
    def __init__(self, message: str = "You cannot thank yourself", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="APPRECIATION_001",
            message=message,
            details=details
        )

class RateLimitError(BaseAPIException):
    """Rate limiting errors"""
    def __init__(
        self,
        message: str = "Rate limit exceeded",
        details: Optional[Dict] = None,
        error_code: str = "RATE_LIMIT_001",
    ):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_code=error_code,
            message=message,
            details=details
        )

class AlreadyThankedTodayError(RateLimitError):
    """Free thank-you already sent to this technician today"""
    def __init__(self, message: str = "Daily limit reached for this technician", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="RATE_LIMIT_002")

class DailyThanksExhaustedError(RateLimitError):
    """Distinct technicians thanked today reached the cap"""
    def __init__(self, message: str = "Daily thank-you limit reached", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="RATE_LIMIT_003")

class DailyConversionLimitError(RateLimitError):
    """Conversions per day reached the cap"""
    def __init__(self, message: str = "Daily conversion limit reached", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="RATE_LIMIT_004")

class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details
        )

class ConflictError(BaseAPIException):
    """Resource conflict errors"""
    def __init__(self, message: str = "Resource conflict", details: Optional[Dict] = None, error_code: str = "CONFLICT_001"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
            message=message,
            details=details
        )

class TransientStoreError(ConflictError):
    """Concurrent writes kept conflicting after bounded retries"""
    def __init__(self, message: str = "Please try again", details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code="CONFLICT_002")

class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )

class InsufficientBalanceError(BaseAPIException):
    """Insufficient token balance errors"""
    def __init__(self, message: str = "Insufficient token balance", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BALANCE_001",
            message=message,
            details=details
        )

class InsufficientPointsError(BaseAPIException):
    """Insufficient points errors"""
    def __init__(self, message: str = "Insufficient points", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="POINTS_001",
            message=message,
            details=details
        )
