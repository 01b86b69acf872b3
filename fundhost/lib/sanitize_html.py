"""Allow-list HTML sanitizer and plain-text summaries.

Disallowed tags are dropped but their text is kept, except for tags whose content
is never displayed (scripts, styles, embeds) which are dropped entirely.
"""

from dataclasses import dataclass
from html import escape
from html.parser import HTMLParser
from urllib.parse import urlparse


@dataclass(frozen=True)
class SanitizeOptions:
    """Which tags and attributes survive sanitization."""

    allowed_tags: frozenset[str]
    allow_links: bool = False
    allow_images: bool = False


_BASIC_TAGS = frozenset(
    {"b", "strong", "i", "em", "u", "s", "strike", "del", "p", "br", "ul", "ol", "li", "blockquote", "code", "pre"}
)

SIMPLIFIED = SanitizeOptions(allowed_tags=_BASIC_TAGS | {"a"}, allow_links=True)
COMMENT = SanitizeOptions(allowed_tags=_BASIC_TAGS | {"a", "h3", "img"}, allow_links=True, allow_images=True)
UPDATE = SanitizeOptions(
    allowed_tags=_BASIC_TAGS | {"a", "h1", "h2", "h3", "hr", "img", "figure", "figcaption"},
    allow_links=True,
    allow_images=True,
)

VOID_TAGS = frozenset({"br", "hr", "img"})
SKIP_CONTENT_TAGS = frozenset({"script", "style", "iframe", "object", "embed", "noscript", "template"})
BLOCK_TAGS = frozenset(
    {"p", "br", "div", "li", "ul", "ol", "blockquote", "pre", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "figure"}
)

LINK_SCHEMES = ("http", "https", "mailto")
IMAGE_SCHEMES = ("http", "https")


def _has_scheme(url: str, schemes: tuple[str, ...]) -> bool:
    return urlparse(url.strip()).scheme.lower() in schemes


class _Sanitizer(HTMLParser):
    def __init__(self, options: SanitizeOptions):
        super().__init__(convert_charrefs=True)
        self.options = options
        self.parts: list[str] = []
        self.open_tags: list[str] = []
        self.skip_depth = 0

    def _safe_attrs(self, tag: str, attrs: list[tuple[str, str | None]]) -> str | None:
        values = {name: value for name, value in attrs if value is not None}
        kept: list[tuple[str, str]] = []
        if tag == "a" and self.options.allow_links:
            href = values.get("href")
            if href and _has_scheme(href, LINK_SCHEMES):
                kept.append(("href", href.strip()))
                kept.append(("rel", "noopener noreferrer nofollow"))
        elif tag == "img" and self.options.allow_images:
            src = values.get("src")
            if not src or not _has_scheme(src, IMAGE_SCHEMES):
                return None
            kept.append(("src", src.strip()))
            if values.get("alt"):
                kept.append(("alt", values["alt"]))
        return "".join(f' {name}="{escape(value, quote=True)}"' for name, value in kept)

    def handle_starttag(self, tag, attrs):
        if tag in SKIP_CONTENT_TAGS:
            self.skip_depth += 1
            return
        if self.skip_depth or tag not in self.options.allowed_tags:
            return
        attributes = self._safe_attrs(tag, attrs)
        if attributes is None:
            return
        self.parts.append(f"<{tag}{attributes}>")
        if tag not in VOID_TAGS:
            self.open_tags.append(tag)

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag not in VOID_TAGS and tag in self.open_tags:
            self.handle_endtag(tag)

    def handle_endtag(self, tag):
        if tag in SKIP_CONTENT_TAGS:
            self.skip_depth = max(0, self.skip_depth - 1)
            return
        if self.skip_depth or tag not in self.open_tags:
            return
        while self.open_tags:
            current = self.open_tags.pop()
            self.parts.append(f"</{current}>")
            if current == tag:
                break

    def handle_data(self, data):
        if not self.skip_depth:
            self.parts.append(escape(data, quote=False))

    def result(self) -> str:
        self.close()
        while self.open_tags:
            self.parts.append(f"</{self.open_tags.pop()}>")
        return "".join(self.parts)


class _TextExtractor(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []
        self.skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in SKIP_CONTENT_TAGS:
            self.skip_depth += 1
        elif tag in BLOCK_TAGS:
            self.parts.append(" ")

    def handle_endtag(self, tag):
        if tag in SKIP_CONTENT_TAGS:
            self.skip_depth = max(0, self.skip_depth - 1)
        elif tag in BLOCK_TAGS:
            self.parts.append(" ")

    def handle_data(self, data):
        if not self.skip_depth:
            self.parts.append(data)


def sanitize_html(content: str | None, options: SanitizeOptions = SIMPLIFIED) -> str | None:
    """Return ``content`` with only the tags and attributes allowed by ``options``."""
    if content is None:
        return None
    parser = _Sanitizer(options)
    parser.feed(content)
    return parser.result()


def strip_html(content: str | None) -> str:
    """Extract the visible text of an HTML fragment, whitespace collapsed."""
    if not content:
        return ""
    parser = _TextExtractor()
    parser.feed(content)
    parser.close()
    return " ".join("".join(parser.parts).split())


def generate_summary(content: str | None, max_length: int = 240) -> str:
    """Build a plain-text summary of at most ``max_length`` characters."""
    text = strip_html(content)
    if len(text) <= max_length:
        return text
    return text[: max_length - 3].rstrip() + "..."


__all__ = [
    "SanitizeOptions",
    "SIMPLIFIED",
    "COMMENT",
    "UPDATE",
    "sanitize_html",
    "strip_html",
    "generate_summary",
]
