import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from flock.config_secrets import USERNAME_MAX_LENGTH, USERNAME_MIN_LENGTH

MENTION_PATTERN = re.compile(r"@(\w+)")
HASHTAG_PATTERN = re.compile(r"#(\w+)")
USERNAME_PATTERN = re.compile(r"^[a-z0-9_]+$")


def _distinct(values: list[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def extract_mentions(text: str) -> list[str]:
    """Distinct @mentions in order of appearance, lower-cased."""
    return _distinct([match.lower() for match in MENTION_PATTERN.findall(text)])


def extract_hashtags(text: str) -> list[str]:
    """Distinct #hashtags in order of appearance, lower-cased."""
    return _distinct([match.lower() for match in HASHTAG_PATTERN.findall(text)])


def normalize_username(username: str) -> str:
    return username.strip().lower()


def username_error(username: str) -> Optional[str]:
    """Return why a normalized username is invalid, or None if it is fine."""
    if not USERNAME_PATTERN.match(username):
        return "Username can only contain letters, numbers, and underscores"
    if len(username) < USERNAME_MIN_LENGTH:
        return f"Username must be at least {USERNAME_MIN_LENGTH} characters long"
    if len(username) > USERNAME_MAX_LENGTH:
        return f"Username must be {USERNAME_MAX_LENGTH} characters or less"
    return None


def username_base_from_email(email: str) -> str:
    """Username seed from an email local-part, padded or cut to a valid length."""
    base = re.sub(r"[^a-z0-9_]", "", email.split("@")[0].lower())
    if len(base) < USERNAME_MIN_LENGTH:
        base = (base + "user")[:USERNAME_MIN_LENGTH] if base else "user"
    # leave room for a numeric suffix
    return base[: USERNAME_MAX_LENGTH - 3]


def format_count(count: int) -> str:
    """Human readable count: 999 -> "999", 1234 -> "1.2K"."""
    if count > 999:
        # halves round up: 1250 -> "1.3K"
        thousands = (Decimal(count) / 1000).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return f"{thousands}K"
    return str(count)


def truncate_preview(text: str, length: int) -> str:
    if len(text) > length:
        return text[:length] + "..."
    return text
