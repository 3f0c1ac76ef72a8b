"""Result of a best-effort cache write."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StoreResult:
    """Outcome of ``CacheStore.set``.

    Callers may log a failed result but must not change the response they
    return to the user because of it.
    """

    ok: bool
    key: str | None = None
    error: str | None = None

    @classmethod
    def success(cls, key: str) -> "StoreResult":
        return cls(ok=True, key=key)

    @classmethod
    def failure(cls, error: BaseException | str, key: str | None = None) -> "StoreResult":
        return cls(ok=False, key=key, error=str(error))
