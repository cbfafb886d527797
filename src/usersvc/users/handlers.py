"""
=============================================================================
USER ROUTE HANDLERS
=============================================================================

The five operations exposed over HTTP, each one a thin translation
between an HTTPRequest, one repository call, and an HTTPResponse.

    ┌────────┬──────────────┬──────────┬──────────────────────────────┐
    │ Method │ Path         │ Handler  │ Success                      │
    ├────────┼──────────────┼──────────┼──────────────────────────────┤
    │ POST   │ /users       │ create   │ 200 "User created"           │
    │ GET    │ /users/*rest │ read_one │ 200 {"id":..,"name":..,...}  │
    │ GET    │ /users       │ read_all │ 200 [{...}, ...]             │
    │ PUT    │ /users/*rest │ update   │ 200 "User updated"           │
    │ DELETE │ /users/*rest │ delete   │ 200 "User deleted"           │
    └────────┴──────────────┴──────────┴──────────────────────────────┘

The order matters: GET /users/*rest is registered before GET /users and
the first match wins.

=============================================================================
ERROR MAPPING
=============================================================================

One mapping, shared by every handler:

    InvalidUserError   → 400  short reason
    UserNotFound       → 404  "User not found"
    StoreUnavailable   → 503  "Service Unavailable"
    StoreError         → 500  "Error"

=============================================================================
"""

import logging
from functools import wraps

from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse,
    ok,
    bad_request,
    not_found,
    internal_error,
    service_unavailable,
)
from ..http.router import Router, Handler
from .errors import InvalidUserError, StoreError, StoreUnavailable, UserNotFound
from .models import User, parse_user_id
from .repository import UserRepository


logger = logging.getLogger(__name__)


# The id is the third "/"-separated segment: "", "users", "<id>"
ID_SEGMENT = 2


def maps_domain_errors(handler: Handler) -> Handler:
    """Convert domain exceptions raised by a handler into responses."""

    @wraps(handler)
    def wrapper(request: HTTPRequest) -> HTTPResponse:
        try:
            return handler(request)
        except InvalidUserError as e:
            logger.info(f"Rejected {request.method} {request.path}: {e}")
            return bad_request(str(e))
        except UserNotFound:
            return not_found("User not found")
        except StoreUnavailable:
            return service_unavailable()
        except StoreError:
            return internal_error()

    return wrapper


class UserHandlers:
    """
    Route handlers bound to one repository.

        handlers = UserHandlers(repository)
        handlers.register(router)
    """

    def __init__(self, repository: UserRepository):
        self.repository = repository

    def register(self, router: Router) -> Router:
        """Install the user routes on a router, in matching order."""
        router.add_route("/users", maps_domain_errors(self.create), "POST", name="create")
        router.add_route("/users/*rest", maps_domain_errors(self.read_one), "GET", name="read_one")
        router.add_route("/users", maps_domain_errors(self.read_all), "GET", name="read_all")
        router.add_route("/users/*rest", maps_domain_errors(self.update), "PUT", name="update")
        router.add_route("/users/*rest", maps_domain_errors(self.delete), "DELETE", name="delete")
        return router

    def create(self, request: HTTPRequest) -> HTTPResponse:
        user = User.from_json(request.body)
        user_id = self.repository.insert(user.name, user.email)
        logger.info(f"Created user {user_id}")
        return ok("User created")

    def read_one(self, request: HTTPRequest) -> HTTPResponse:
        user_id = parse_user_id(request.path_segment(ID_SEGMENT))
        user = self.repository.fetch_by_id(user_id)
        return ok(user.to_dict())

    def read_all(self, request: HTTPRequest) -> HTTPResponse:
        users = self.repository.fetch_all()
        return ok([user.to_dict() for user in users])

    def update(self, request: HTTPRequest) -> HTTPResponse:
        user_id = parse_user_id(request.path_segment(ID_SEGMENT))
        user = User.from_json(request.body)
        self.repository.update_by_id(user_id, user.name, user.email)
        logger.info(f"Updated user {user_id}")
        return ok("User updated")

    def delete(self, request: HTTPRequest) -> HTTPResponse:
        user_id = parse_user_id(request.path_segment(ID_SEGMENT))
        self.repository.delete_by_id(user_id)
        logger.info(f"Deleted user {user_id}")
        return ok("User deleted")
