"""
Custom exception classes for consistent error handling
"""
from flask import jsonify


class ResumeSessionException(Exception):
    """Base exception for all resume session errors"""
    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        self.message = message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        return {
            'error': self.message,
            'error_code': self.error_code,
            'details': self.details
        }

    def to_response(self):
        return jsonify(self.to_dict()), self.status_code


class ValidationError(ResumeSessionException):
    """Input validation error (missing or duplicate title, bad payload)"""
    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str = None, details: dict = None):
        if field:
            message = f"Validation error for field '{field}': {message}"
        super().__init__(message, self.error_code, details)


class AuthenticationError(ResumeSessionException):
    """Authentication error"""
    status_code = 401
    error_code = "AUTH_ERROR"

    def __init__(self, message: str = "Authentication required", details: dict = None):
        super().__init__(message, self.error_code, details)


class AuthorizationError(ResumeSessionException):
    """Permission denied error"""
    status_code = 403
    error_code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "You do not have permission to access this resume", details: dict = None):
        super().__init__(message, self.error_code, details)


class QuotaExceededError(ResumeSessionException):
    """Plan resume limit reached"""
    status_code = 403
    error_code = "resume_limit_reached"

    def __init__(self, resume_count: int, limit: int, details: dict = None):
        message = f"Resume limit reached for your plan ({resume_count}/{limit})"
        super().__init__(message, self.error_code, {
            'resumeCount': resume_count,
            'limit': limit,
            **(details or {})
        })


class NotFoundError(ResumeSessionException):
    """Resource not found error"""
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resume", details: dict = None, message: str = None):
        message = message or f"{resource} not found"
        super().__init__(message, self.error_code, details)


class NetworkError(ResumeSessionException):
    """Transport failure or non-2xx response from the resume API"""
    status_code = 502
    error_code = "NETWORK_ERROR"

    def __init__(self, operation: str, message: str = None, status: int = None, details: dict = None):
        if not message:
            message = f"Resume API call '{operation}' failed. Please try again."
        error_details = {'operation': operation, **(details or {})}
        if status is not None:
            error_details['status'] = status
        super().__init__(message, self.error_code, error_details)


class MalformedLocalStateError(ResumeSessionException):
    """Corrupt or unreadable session storage value"""
    status_code = 500
    error_code = "MALFORMED_LOCAL_STATE"

    def __init__(self, key: str, message: str = None, details: dict = None):
        if not message:
            message = f"Stored value for '{key}' could not be read"
        super().__init__(message, self.error_code, {'key': key, **(details or {})})


def handle_resume_session_exception(e: ResumeSessionException):
    """Flask error handler for resume session exceptions"""
    return e.to_response()


def register_error_handlers(app):
    """Register error handlers with Flask app"""
    app.register_error_handler(ResumeSessionException, handle_resume_session_exception)

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({
            'error': 'Bad request',
            'error_code': 'BAD_REQUEST',
            'details': {'message': str(e)}
        }), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({
            'error': 'Resource not found',
            'error_code': 'NOT_FOUND',
            'details': {}
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({
            'error': 'Method not allowed',
            'error_code': 'METHOD_NOT_ALLOWED',
            'details': {}
        }), 405

    @app.errorhandler(500)
    def internal_error(e):
        return jsonify({
            'error': 'An unexpected error occurred. Please try again later.',
            'error_code': 'INTERNAL_ERROR',
            'details': {}
        }), 500
