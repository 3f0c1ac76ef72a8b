"""Domain exceptions.

Only these errors are meant to reach the HTTP layer. Cache and storage
faults are contained inside the repositories and never raise to callers.
"""

from toolsense_cache.entities import RateLimitResult


class ToolSenseError(Exception):
    """Base class for errors surfaced by the chat service."""


class RateLimitExceededError(ToolSenseError):
    """The caller used up its request budget for the current window."""

    def __init__(self, result: RateLimitResult) -> None:
        super().__init__(
            f"Rate limit exceeded, retry in {result.retry_after_seconds}s"
        )
        self.result = result


class InvalidQueryError(ToolSenseError):
    """The query is not a product name, company name or URL."""


class GenerationError(ToolSenseError):
    """The report generator failed to produce a response."""
