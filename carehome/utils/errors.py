# /carehome/utils/errors.py


class AppError(Exception):
    """Operational error carrying the HTTP status it should be rendered with."""
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None, status_code=None):
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400
    default_message = 'Validation failed'


class UnauthorizedError(AppError):
    status_code = 401
    default_message = 'Unauthorized access'


class ForbiddenError(AppError):
    status_code = 403
    default_message = 'Access forbidden'


class NotFoundError(AppError):
    status_code = 404
    default_message = 'Resource not found'


class ConflictError(AppError):
    status_code = 409
    default_message = 'Conflict with existing resource'
