"""Social link service: the ordered profile links of a collective."""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from fundhost.models.social_link import SocialLink, SocialLinkType

logger = logging.getLogger(__name__)


class SocialLinkService:
    """Service for SocialLink operations. Links are identified by (collective_id, type, url)."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def set_links(self, collective_id: int, links: Iterable[dict]) -> list[SocialLink]:
        """Replace all links of the collective; list position becomes ``order``.

        Args:
            collective_id: Owner collective
            links: dicts with ``type`` and ``url``; duplicates of an earlier link are dropped
        """
        new_links = []
        seen = set()
        for link in links:
            social_link = SocialLink(
                collective_id=collective_id,
                type=link["type"],
                url=link["url"],
                order=len(new_links),
            )
            if social_link.key in seen:
                continue
            seen.add(social_link.key)
            new_links.append(social_link)

        try:
            for existing in self.get_links(collective_id):
                self.db.delete(existing)
            self.db.flush()
            self.db.add_all(new_links)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Set %s social links on collective %s", len(new_links), collective_id)
        return new_links

    def get_links(self, collective_id: int) -> list[SocialLink]:
        return (
            self.db.query(SocialLink)
            .filter(SocialLink.collective_id == collective_id)
            .order_by(SocialLink.order)
            .all()
        )

    def index(self, collective_id: int) -> dict[tuple[int, SocialLinkType, str], SocialLink]:
        return {link.key: link for link in self.get_links(collective_id)}


__all__ = ["SocialLinkService"]
