"""Usage record domain entity."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class UsageRecord:
    """Which shared cache entries a user has produced or retrieved.

    Membership only grows. Used for analytics, never for hit decisions.

    Attributes:
        user_id: The acting user's identifier
        touched_entry_keys: Hashed keys of entries the user has touched
        last_updated: Last time a key was added (Unix timestamp, seconds)
    """

    user_id: str
    touched_entry_keys: frozenset[str] = field(default_factory=frozenset)
    last_updated: float = 0.0
