"""Tag normalization and validation."""

from fundhost.errors import ValidationError

MAX_TAGS = 30
MAX_TAG_LENGTH = 32


def sanitize_tags(tags: list[str] | None) -> list[str] | None:
    """Trim, lowercase and dedupe tags, keeping their first-seen order.

    None stays None; an empty result becomes None.
    """
    if tags is None:
        return None
    result: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result or None


def validate_tags(tags: list[str] | None, field: str = "tags") -> None:
    if tags is None:
        return
    if len(tags) > MAX_TAGS:
        raise ValidationError(field, f"Cannot have more than {MAX_TAGS} tags")
    for tag in tags:
        if len(tag) > MAX_TAG_LENGTH:
            raise ValidationError(field, f"Tag '{tag}' is longer than {MAX_TAG_LENGTH} characters")


__all__ = ["sanitize_tags", "validate_tags", "MAX_TAGS", "MAX_TAG_LENGTH"]
