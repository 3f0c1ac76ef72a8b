"""Chat conversation entities."""

from dataclasses import dataclass

from .rate_window import RateLimitResult


@dataclass(frozen=True)
class ChatMessage:
    """A prior conversation turn. ``role`` is ``"user"`` or ``"assistant"``."""

    role: str
    content: str


@dataclass(frozen=True)
class GenerationResult:
    """Text returned by a report generator and the model that produced it."""

    text: str
    model: str


@dataclass(frozen=True)
class ChatOutcome:
    """What the chat service hands back to the HTTP layer.

    Attributes:
        message: Report or answer text
        model: Generator that produced the text (None when unknown for a cache hit)
        cached: True if the text came from the cache
        rate_limit: Admission result, used for response headers
    """

    message: str
    model: str | None
    cached: bool
    rate_limit: RateLimitResult | None = None
