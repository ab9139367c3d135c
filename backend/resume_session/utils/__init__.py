"""
Utility functions and helpers
"""
from .exceptions import (
    ResumeSessionException,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    QuotaExceededError,
    NotFoundError,
    NetworkError,
    MalformedLocalStateError,
)
from .validation import validate_request

__all__ = [
    'ResumeSessionException',
    'ValidationError',
    'AuthenticationError',
    'AuthorizationError',
    'QuotaExceededError',
    'NotFoundError',
    'NetworkError',
    'MalformedLocalStateError',
    'validate_request',
]
