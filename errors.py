"""Errors raised by the circulation and role-assignment operations.

Each error knows the HTTP status and machine-readable code it maps to, so the
app-level error handler can turn any of them into a JSON response.
"""


class LibraryError(Exception):
    status_code = 400
    code = 'library_error'
    message = 'Request could not be processed'

    def __init__(self, message=None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class Unavailable(LibraryError):
    code = 'unavailable'
    message = 'Book is no longer available.'


class NotFoundOrAlreadyReturned(LibraryError):
    status_code = 404
    code = 'not_found_or_already_returned'
    message = 'Loan not found or already returned.'


class CannotSelfDemote(LibraryError):
    code = 'cannot_self_demote'
    message = 'You cannot remove your own Admin role.'


class StorageFailure(LibraryError):
    status_code = 500
    code = 'storage_failure'
    message = 'Error processing your request.'


class Forbidden(LibraryError):
    status_code = 403
    code = 'forbidden'
    message = 'Forbidden: You do not have permission.'


class InvalidRequest(LibraryError):
    code = 'invalid_request'
    message = 'Invalid request.'


class UserNotFound(LibraryError):
    status_code = 404
    code = 'user_not_found'
    message = 'User not found.'


class BookNotFound(LibraryError):
    status_code = 404
    code = 'book_not_found'
    message = 'Book not found.'


class BookInUse(LibraryError):
    status_code = 409
    code = 'book_in_use'
    message = 'Book has loan history and cannot be deleted.'
