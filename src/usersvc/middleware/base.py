"""
=============================================================================
MIDDLEWARE
=============================================================================

A middleware sees every request on its way to the router and every
response on its way back:

    client ──► LoggingMiddleware ──► router.handle ──► UserHandlers
    client ◄── LoggingMiddleware ◄── HTTPResponse  ◄──────┘

wrap() nests them around a handler. The first one given is the outermost.

=============================================================================
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Callable

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


# The next middleware in line, or the router itself.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    A callable that receives the request and the rest of the chain.

    It may return next(request) unchanged, decorate that response, or
    answer on its own without calling next at all.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        pass


def wrap(handler: NextHandler, *middleware: Middleware) -> NextHandler:
    """
    Return handler with each middleware around it.

        wrap(router.handle, LoggingMiddleware())
    """
    for outer in reversed(middleware):
        handler = partial(outer, next=handler)
    return handler
