"""Handler layer for HTTP endpoints.

This layer contains the HTTP request/response handlers.
Handlers depend on services (business logic), not directly on repositories.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)
"""

from .chat_handler import ChatHandler, rate_limit_headers

__all__ = [
    "ChatHandler",
    "rate_limit_headers",
]
