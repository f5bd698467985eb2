"""
Error taxonomy for the BuildTrack API.

Every error raised on purpose by a service carries the HTTP status and a
machine-readable code; the handlers registered in ``create_app`` turn them
into JSON responses.
"""


class AppError(Exception):
    status_code = 500
    code = 'INTERNAL_ERROR'
    default_message = 'An unexpected error occurred. Please try again later.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            'error': self.__class__.__name__,
            'message': self.message,
            'code': self.code,
        }


class ValidationError(AppError):
    """Bad or missing fields, unsupported upload type or size."""
    status_code = 400
    code = 'VALIDATION_ERROR'
    default_message = 'Invalid request data'


class AuthorizationError(AppError):
    """Resource belongs to another user."""
    status_code = 403
    code = 'FORBIDDEN'
    default_message = 'You do not have access to this resource'


class NotFoundError(AppError):
    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Resource not found'


class ExternalServiceError(AppError):
    """Extraction service unreachable or returned something unusable."""
    status_code = 502
    code = 'EXTERNAL_SERVICE_ERROR'
    default_message = 'External service request failed'
