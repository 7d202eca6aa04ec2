"""Error text sanitization for messages stored on assessment records."""

from __future__ import annotations

import os
import re

_SECRET_PATTERNS: list[tuple[str, str]] = [
    (r"Bearer\s+\S+", "Bearer [REDACTED]"),
    (r"(?i)authorization:\s*\S+", "Authorization: [REDACTED]"),
    (r"(?i)(api[-_]?key|client[-_]?secret|password|token)=([^&\s]+)", r"\1=[REDACTED]"),
    (r"(?i)x-api-key:\s*\S+", "x-api-key: [REDACTED]"),
    (r"(?i)AccountKey=[^;\s]+", "AccountKey=[REDACTED]"),
    (r"(?i)SharedAccessSignature=[^;\s]+", "SharedAccessSignature=[REDACTED]"),
]


def sanitize_error(message: str) -> str:
    """Redact credentials and the user's home directory from error text."""
    if not message:
        return message

    sanitized = message
    for pattern, replacement in _SECRET_PATTERNS:
        sanitized = re.sub(pattern, replacement, sanitized)

    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home and home != "/":
        sanitized = sanitized.replace(home, "[USER_HOME]")

    return sanitized
