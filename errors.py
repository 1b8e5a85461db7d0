"""
Error taxonomy for the expense API.

Services raise these; main.py turns them into JSON responses. The message
on each error is safe to show to the client.
"""

from fastapi import status


class ExpenseTrackerError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ExpenseTrackerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConflictError(ExpenseTrackerError):
    # Existing-resource conflicts are reported as 400 by this API
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class AuthError(ExpenseTrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(ExpenseTrackerError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(ExpenseTrackerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"
