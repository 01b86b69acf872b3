"""SocialLink ORM model: ordered profile links of a collective."""

from enum import Enum

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import ValidationError
from fundhost.lib.validators import is_url, to_enum
from fundhost.models import Base, TimestampMixin


class SocialLinkType(str, Enum):
    WEBSITE = "WEBSITE"
    TWITTER = "TWITTER"
    GITHUB = "GITHUB"
    GITLAB = "GITLAB"
    MASTODON = "MASTODON"
    MEETUP = "MEETUP"
    LINKEDIN = "LINKEDIN"
    FACEBOOK = "FACEBOOK"
    INSTAGRAM = "INSTAGRAM"
    DISCORD = "DISCORD"
    YOUTUBE = "YOUTUBE"
    TIKTOK = "TIKTOK"
    TUMBLR = "TUMBLR"
    DISCORD_INVITE = "DISCORD_INVITE"
    PIXELFED = "PIXELFED"
    GHOST = "GHOST"
    PEERTUBE = "PEERTUBE"
    SLACK = "SLACK"
    TWITCH = "TWITCH"
    THREADS = "THREADS"
    OTHER = "OTHER"


class SocialLink(Base, TimestampMixin):
    """Keyed by (collective_id, type, url); not paranoid."""

    __tablename__ = "social_links"

    collective_id: Mapped[int] = mapped_column(ForeignKey("collectives.id"), primary_key=True)
    type: Mapped[SocialLinkType] = mapped_column(primary_key=True)
    url: Mapped[str] = mapped_column(String(2048), primary_key=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(SocialLinkType, value, key)

    @validates("url")
    def _validate_url(self, key, value):
        if not is_url(value):
            raise ValidationError(key, f"Invalid URL: {value}")
        return value

    @property
    def key(self) -> tuple[int, SocialLinkType, str]:
        return (self.collective_id, self.type, self.url)

    @property
    def info(self) -> dict:
        return {"type": self.type.value, "url": self.url, "order": self.order}
