"""The user resource: model, persistence gateway and route handlers."""

from .errors import InvalidUserError, StoreError, StoreUnavailable, UserNotFound
from .models import User, parse_user_id
from .repository import UserRepository
from .handlers import UserHandlers

__all__ = [
    "InvalidUserError",
    "StoreError",
    "StoreUnavailable",
    "UserNotFound",
    "User",
    "parse_user_id",
    "UserRepository",
    "UserHandlers",
]
