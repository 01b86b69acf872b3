"""Unit tests for the pure helpers in fundhost.lib."""

import pytest

from fundhost.errors import ConfigError, InvariantError, ValidationError
from fundhost.lib import encryption
from fundhost.lib.sanitize_html import COMMENT, SIMPLIFIED, generate_summary, sanitize_html
from fundhost.lib.slugs import slugify, suggest_unique_slug
from fundhost.lib.tags import sanitize_tags, validate_tags
from fundhost.lib.validators import (
    has_only_keys,
    is_email,
    is_iso_country,
    is_supported_currency,
    is_url,
    to_enum,
)
from fundhost.models.payout_method import PayoutMethodType


@pytest.mark.unit
class TestSanitizeHtml:
    def test_script_content_is_dropped(self):
        html = "<p>Hi <script>alert(1)</script><b>there</b></p>"
        assert sanitize_html(html, COMMENT) == "<p>Hi <b>there</b></p>"

    def test_disallowed_tag_keeps_text(self):
        assert sanitize_html("<div>text</div>", SIMPLIFIED) == "text"

    def test_unsafe_link_loses_href(self):
        assert sanitize_html('<a href="javascript:alert(1)">x</a>', SIMPLIFIED) == "<a>x</a>"

    def test_safe_link_keeps_href_only(self):
        html = '<a href="https://example.com" onclick="steal()">x</a>'
        assert sanitize_html(html, SIMPLIFIED) == (
            '<a href="https://example.com" rel="noopener noreferrer nofollow">x</a>'
        )

    def test_images_only_where_allowed(self):
        html = '<img src="https://example.com/a.png">'
        assert sanitize_html(html, SIMPLIFIED) == ""
        assert sanitize_html(html, COMMENT) == '<img src="https://example.com/a.png">'

    def test_none_stays_none(self):
        assert sanitize_html(None) is None


@pytest.mark.unit
class TestGenerateSummary:
    def test_blocks_are_separated(self):
        assert generate_summary("<p>Hello</p><p>world</p>") == "Hello world"

    def test_truncates_with_ellipsis(self):
        summary = generate_summary("a" * 300, 240)
        assert len(summary) == 240
        assert summary.endswith("...")

    def test_empty(self):
        assert generate_summary(None) == ""


@pytest.mark.unit
class TestSlugs:
    def test_slugify_folds_accents(self):
        assert slugify("Héllo World!") == "hello-world"

    def test_slugify_empty(self):
        assert slugify("") == ""
        assert slugify(None) == ""

    def test_suggest_unique_slug(self):
        assert suggest_unique_slug("babel", []) == "babel"
        assert suggest_unique_slug("babel", ["babel"]) == "babel1"
        assert suggest_unique_slug("babel", ["babel", "babel1"]) == "babel2"


@pytest.mark.unit
class TestTags:
    def test_sanitize_tags(self):
        assert sanitize_tags([" Open Source ", "open source", "", "JS"]) == ["open source", "js"]

    def test_empty_tags_become_none(self):
        assert sanitize_tags([]) is None
        assert sanitize_tags(None) is None

    def test_too_many_tags(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_tags([f"tag{i}" for i in range(31)])
        assert exc_info.value.field == "tags"

    def test_tag_too_long(self):
        with pytest.raises(ValidationError):
            validate_tags(["x" * 33])


@pytest.mark.unit
class TestValidators:
    def test_is_email(self):
        assert is_email("alice@example.com")
        assert not is_email("alice")
        assert not is_email(None)

    def test_is_url(self):
        assert is_url("https://opencollective.com/babel")
        assert is_url("http://localhost:3000")
        assert not is_url("ftp://example.com")
        assert not is_url("https://exa mple.com")
        assert not is_url("not a url")

    def test_country_and_currency(self):
        assert is_iso_country("FR")
        assert not is_iso_country("XX")
        assert is_supported_currency("USD")
        assert not is_supported_currency("ABC")

    def test_has_only_keys(self):
        assert has_only_keys({"email": "a@b.co"}, ["email"])
        assert not has_only_keys({"email": "a@b.co", "x": 1}, ["email"])

    def test_to_enum(self):
        assert to_enum(PayoutMethodType, "PAYPAL", "type") == PayoutMethodType.PAYPAL
        assert to_enum(PayoutMethodType, None, "type") is None
        with pytest.raises(ValidationError):
            to_enum(PayoutMethodType, "CASH", "type")


@pytest.mark.unit
class TestEncryption:
    def test_ciphertext_differs_from_plaintext(self):
        stored = encryption.encrypt("s3cret")
        assert stored != "s3cret"
        assert encryption.decrypt(stored) == "s3cret"

    def test_json_values(self):
        stored = encryption.encrypt_json({"number": "4242", "cvv": "123"})
        assert "4242" not in stored
        assert encryption.decrypt_json(stored) == {"number": "4242", "cvv": "123"}

    def test_undecodable_json_is_none(self):
        assert encryption.decrypt_json("garbage") is None

    def test_decrypt_garbage_raises(self):
        with pytest.raises(InvariantError):
            encryption.decrypt("garbage")

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr(encryption.get_settings(), "encryption_key", None)
        with pytest.raises(ConfigError):
            encryption.encrypt("s3cret")
