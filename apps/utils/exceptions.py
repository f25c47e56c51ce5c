# utils/exceptions.py

"""
Business errors raised by LibraryDesk services.

Each error carries a stable ``code`` and a user-facing ``message``. Views
and JSON endpoints convert them with ``utils.utils.run_service``.
"""


class LibraryDeskError(Exception):
    code = 'error'
    status_code = 400
    default_message = 'Something went wrong'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_dict(self):
        return {'success': False, 'error': self.message, 'code': self.code}


class Unauthorized(LibraryDeskError):
    code = 'unauthorized'
    status_code = 401
    default_message = 'Unauthorized'


class ValidationFailed(LibraryDeskError):
    code = 'validation_error'
    status_code = 400
    default_message = 'Invalid data'


class NotFound(LibraryDeskError):
    code = 'not_found'
    status_code = 404
    default_message = 'Not found'


class InsufficientBalance(ValidationFailed):
    code = 'insufficient_balance'
    default_message = 'Amount exceeds available balance'


class InvalidTransition(ValidationFailed):
    code = 'invalid_transition'
    status_code = 409
    default_message = 'This action is not allowed in the current state'


class OperationFailed(LibraryDeskError):
    code = 'operation_failed'
    status_code = 500
    default_message = 'Operation failed. Please try again.'
