"""Input validation for chat queries.

Opening queries must look like a product name, company name or URL, and no
message may carry prompt-injection phrasing. Validation runs after admission
and before any cache lookup.
"""

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

MAX_INPUT_LENGTH = 500
MIN_INPUT_LENGTH = 1
MAX_HISTORY_LENGTH = 50

_PROMPT_INJECTION_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        # Instruction override
        r"(forget|ignore|disregard)\s+(all\s+)?(previous|prior|earlier|past)\s+"
        r"(instructions?|prompts?|directives?|commands?)",
        r"override\s+(previous|prior|earlier|past)\s+(instructions?|prompts?|directives?|commands?)",
        r"you\s+are\s+now",
        r"from\s+now\s+on",
        r"new\s+instructions?",
        r"system\s+(prompt|instruction)",
        # Role manipulation
        r"act\s+as\s+(if\s+you\s+are\s+)?(a|an|the)\s+",
        r"pretend\s+to\s+be",
        r"roleplay\s+as",
        r"you\s+are\s+(a|an|the)\s+",
        # Context breaking
        r"start\s+a\s+new\s+conversation",
        r"(clear|reset)\s+(the\s+)?(conversation|history|context|memory)",
        # Code execution
        r"(execute|run)\s+(code|script|command)",
        r"eval\s*\(",
        r"<script",
        r"javascript:",
        # Data extraction
        r"(show\s+(me\s+)?|reveal\s+|print\s+)(your|the)\s+(system|prompt|instructions?|directives?)",
        r"what\s+are\s+your\s+(instructions?|directives?|prompts?)",
        # Jailbreak
        r"jailbreak",
        r"bypass",
        r"hack",
        r"exploit",
        # Chat template markers
        r"```[\s\S]*?```",
        r"\[INST\]",
        r"<\|(system|user|assistant)\|>",
    )
]

_URL_PATTERN = re.compile(r"^(https?://)?([\da-z.-]+)\.([a-z.]{2,6})([/\w .-]*)/?$", re.IGNORECASE)
_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-_.,&()]+$")
_LEADING_VERBS = re.compile(
    r"^(analyze|assess|check|evaluate|review|tell me about|what is|who is|show me|get|find)\s+",
    re.IGNORECASE,
)
_TRAILING_NOUNS = re.compile(
    r"\s+(security|assessment|report|analysis|tool|software|service|platform|product)$",
    re.IGNORECASE,
)
_SYMBOL_RUN = re.compile(r"[<>{}\[\]\\|`~!@#$%^&*+=?;:'\"]{2,}")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HTML_TAG = re.compile(r"<[^>]+>")
_CODE_SPAN = re.compile(r"`[^`]+`")
_MARKDOWN_LINK = re.compile(r"\[.*?\]\(.*?\)")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: str | None = None
    sanitized_input: str | None = None


def sanitize_input(text: str) -> str:
    """Trim, drop control characters and cap the length."""
    return _CONTROL_CHARS.sub("", text.strip())[:MAX_INPUT_LENGTH]


def contains_prompt_injection(text: str) -> bool:
    lowered = text.lower().strip()
    return any(pattern.search(lowered) for pattern in _PROMPT_INJECTION_PATTERNS)


def _contains_suspicious_patterns(text: str) -> bool:
    return (
        bool(_HTML_TAG.search(text))
        or len(_CODE_SPAN.findall(text)) > 2
        or len(_MARKDOWN_LINK.findall(text)) > 3
    )


def is_valid_url(text: str) -> bool:
    trimmed = text.strip()
    if "." not in trimmed or not _URL_PATTERN.match(trimmed):
        return False

    candidate = trimmed if trimmed.startswith(("http://", "https://")) else f"https://{trimmed}"
    try:
        host = urlsplit(candidate).hostname or ""
    except ValueError:
        labels = re.sub(r"^https?://", "", trimmed).split("/")[0].split(".")
        return len(labels) >= 2 and len(labels[-1]) >= 2
    return "." in host


def is_valid_product_name(text: str) -> bool:
    cleaned = _TRAILING_NOUNS.sub("", _LEADING_VERBS.sub("", text)).strip()
    if len(cleaned) < MIN_INPUT_LENGTH or len(text) > MAX_INPUT_LENGTH:
        return False
    if not _NAME_PATTERN.match(cleaned) or not re.search(r"[a-zA-Z]", cleaned):
        return False
    return not _SYMBOL_RUN.search(text)


def validate_query(text: str) -> ValidationResult:
    """Validate an opening query.

    Accepts URLs and product/company names, rejects prompt injection and
    markup-heavy input.

    Returns:
        ValidationResult with the sanitized query when valid
    """
    if not isinstance(text, str) or not text:
        return ValidationResult(False, "Input is required and must be a string")

    sanitized = sanitize_input(text)
    if len(sanitized) < MIN_INPUT_LENGTH:
        return ValidationResult(
            False, "Input is too short. Please provide a product name, company name, or URL."
        )

    if contains_prompt_injection(sanitized):
        return ValidationResult(
            False,
            "Invalid input detected. Please provide only a product name, company name, or URL.",
        )

    is_url = is_valid_url(sanitized)
    if _contains_suspicious_patterns(sanitized) and not is_url:
        return ValidationResult(
            False,
            "Input contains suspicious patterns. Please provide only a product name, "
            "company name, or URL.",
        )

    if not is_url and not is_valid_product_name(sanitized):
        return ValidationResult(
            False, "Invalid input format. Please provide a product name, company name, or URL."
        )

    return ValidationResult(True, sanitized_input=sanitized)


def validate_follow_up(text: str) -> ValidationResult:
    """Validate a follow-up question: free text, but no injection phrasing."""
    sanitized = sanitize_input(text or "")
    if len(sanitized) < MIN_INPUT_LENGTH:
        return ValidationResult(False, "Message is required")
    if contains_prompt_injection(sanitized):
        return ValidationResult(
            False, "Invalid input detected. Please ask about the assessed product."
        )
    return ValidationResult(True, sanitized_input=sanitized)


def validate_history(history: list[tuple[str, str]]) -> ValidationResult:
    """Validate prior turns given as (role, content) pairs."""
    if len(history) > MAX_HISTORY_LENGTH:
        return ValidationResult(False, "Conversation history is too long")
    for role, content in history:
        if role not in ("user", "assistant") or not content:
            return ValidationResult(False, "Invalid message in history")
        if role == "user" and contains_prompt_injection(content):
            return ValidationResult(False, "Invalid content detected in conversation history")
    return ValidationResult(True)
