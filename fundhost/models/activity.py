"""Activity ORM model: audit trail of domain events."""

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fundhost.models import Base, BaseModel


class Activity(Base, BaseModel):
    """Append-only record of something that happened. Not paranoid."""

    __tablename__ = "activities"

    type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True, index=True
    )
    from_collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True
    )
    host_collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True
    )
    expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("expenses.id"), nullable=True, index=True
    )
    transaction_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("idx_activities_type_collective", "type", "collective_id"),)

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, type={self.type})>"
