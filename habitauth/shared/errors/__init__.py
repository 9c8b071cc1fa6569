from .base import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    InfrastructureError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from .http import handle_app_error, register_error_handler

__all__ = [
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "DomainError",
    "InfrastructureError",
    "NotFoundError",
    "RateLimitError",
    "ValidationError",
    "handle_app_error",
    "register_error_handler",
]
