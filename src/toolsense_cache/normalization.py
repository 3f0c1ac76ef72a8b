"""Query normalization and cache key derivation.

Every cache backend addresses entries through this module. Keeping the
algorithm in one place is what lets the file, SQLite and Redis tiers agree
on which queries are "the same tool":

    >>> normalize_query("HTTPS://WWW.GitLab.com/")
    'gitlab'
    >>> normalize_query("GitLab")
    'gitlab'
    >>> derive_key("gitlab", "en")
    'gitlab:en'
"""

import hashlib
import re
from urllib.parse import urlsplit

# Entries older than this are treated as absent by every backend.
RETENTION_MS = 7 * 24 * 60 * 60 * 1000
RETENTION_SECONDS = RETENTION_MS // 1000

DEFAULT_LANGUAGE = "en"
DEFAULT_MODEL = "gemini-2.5-pro"

_SCHEME_PREFIX = re.compile(r"^https?://")
_WWW_PREFIX = re.compile(r"^www\.")
_TRAILING_SLASH = re.compile(r"/$")
_DISALLOWED_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE_RUN = re.compile(r"\s+")
_INVALID_HOST_CHARS = re.compile(r"[\s<>^|\"{}\\`]")


def _extract_host(candidate: str) -> str | None:
    """Return the hostname of ``candidate`` if it parses as an absolute URL."""
    try:
        parts = urlsplit(candidate)
        # Accessing .port validates it; "foo:bar" is not a URL.
        parts.port
    except ValueError:
        return None

    host = parts.hostname
    if not parts.scheme or not host or _INVALID_HOST_CHARS.search(host):
        return None
    return host.rstrip(".") or None


def _strip_top_level_domain(host: str) -> str:
    labels = host.split(".")
    if len(labels) < 2 or labels[-1].isdigit():
        return host
    return ".".join(labels[:-1])


def normalize_query(query: str) -> str:
    """Reduce a free-text query to its canonical lookup form.

    Steps:
    1. Lowercase and trim.
    2. If the text parses as a URL (as given when it carries a scheme,
       otherwise with an assumed ``https://`` prefix), keep only the host,
       without ``www.`` and without its top-level domain.
    3. Strip any remaining scheme, ``www.`` prefix and one trailing slash.
    4. Replace everything except ``a-z``, digits, whitespace and ``-`` with
       a space.
    5. Collapse whitespace and trim again.

    The function is total and idempotent.

    Args:
        query: Raw user input

    Returns:
        The normalized query (may be empty)
    """
    normalized = query.lower().strip()

    candidate = normalized if "://" in normalized else f"https://{normalized}"
    host = _extract_host(candidate)
    if host is not None:
        normalized = _strip_top_level_domain(_WWW_PREFIX.sub("", host))

    normalized = _SCHEME_PREFIX.sub("", normalized)
    normalized = _WWW_PREFIX.sub("", normalized)
    normalized = _TRAILING_SLASH.sub("", normalized)
    normalized = _DISALLOWED_CHARS.sub(" ", normalized)
    normalized = _WHITESPACE_RUN.sub(" ", normalized)
    return normalized.strip()


def normalize_language(language: str | None) -> str:
    """Lowercase and trim a language tag, defaulting to English."""
    return (language or "").strip().lower() or DEFAULT_LANGUAGE


def derive_key(normalized_query: str, language: str) -> str:
    """Plain composite key used by the file and SQLite stores."""
    return f"{normalized_query}:{language}"


def derive_hashed_key(normalized_query: str, language: str) -> str:
    """One-way key used by the shared store so raw queries never appear in ids."""
    return hashlib.sha256(derive_key(normalized_query, language).encode("utf-8")).hexdigest()
