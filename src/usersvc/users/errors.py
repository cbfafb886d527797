"""
Domain errors raised by the user model and repository.

    InvalidUserError   bad input (400)
    UserNotFound       no row for the id (404)
    StoreUnavailable   connection to the store is broken (503)
    StoreError         statement rejected by the store (500)
"""


class InvalidUserError(ValueError):
    """A request body or id could not be turned into a valid user."""


class UserNotFound(Exception):
    """No user row matches the requested id."""

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class StoreError(Exception):
    """The store failed to execute a statement."""


class StoreUnavailable(StoreError):
    """The store connection is broken or could not be established."""
