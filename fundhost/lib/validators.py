"""Field validators returning booleans; callers raise ValidationError."""

import re
from collections.abc import Iterable, Mapping
from urllib.parse import urlparse

from fundhost.constants.countries import COUNTRY_CODES
from fundhost.constants.currencies import SUPPORTED_CURRENCIES
from fundhost.errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_email(value: object) -> bool:
    return isinstance(value, str) and len(value) <= 254 and bool(EMAIL_RE.match(value))


def is_url(value: object) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not isinstance(value, str) or not value or any(c.isspace() for c in value):
        return False
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    return "." in parsed.hostname or parsed.hostname == "localhost"


def is_iso_country(value: object) -> bool:
    return isinstance(value, str) and value in COUNTRY_CODES


def is_supported_currency(value: object) -> bool:
    return isinstance(value, str) and value in SUPPORTED_CURRENCIES


def has_only_keys(data: Mapping, allowed: Iterable[str]) -> bool:
    """True when every key of ``data`` is in ``allowed``."""
    return set(data).issubset(set(allowed))


def to_enum(enum_cls, value, field: str):
    """Coerce ``value`` to a member of ``enum_cls`` or raise ValidationError."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, f"{field} must be one of: {allowed}") from None


__all__ = [
    "is_email",
    "is_url",
    "is_iso_country",
    "is_supported_currency",
    "has_only_keys",
    "to_enum",
]
