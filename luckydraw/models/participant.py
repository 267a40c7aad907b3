from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base

if TYPE_CHECKING:
    from .lottery import LotteryActivity


def display_name(
    user_id: str,
    username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> str:
    """``@username``, else the first/last name, else ``user <id>``."""
    if username:
        return f"@{username}"
    full = " ".join(part for part in (first_name, last_name) if part)
    return full or f"user {user_id}"


class Participant(Base):
    """A user admitted into a lottery. Immutable once created."""

    __tablename__ = "lottery_participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lottery_id: Mapped[int] = mapped_column(
        ForeignKey("lotteries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    lottery: Mapped["LotteryActivity"] = relationship(back_populates="participants")

    __table_args__ = (
        UniqueConstraint("lottery_id", "user_id", name="uq_participant_per_lottery"),
    )

    def __repr__(self) -> str:
        return (
            "<Participant("
            f"id={self.id}, lottery_id={self.lottery_id}, user_id={self.user_id!r}"
            ")>"
        )

    @property
    def display_name(self) -> str:
        return display_name(self.user_id, self.username, self.first_name, self.last_name)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lottery_id": self.lottery_id,
            "user_id": self.user_id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "joined_at": dt_iso(self.joined_at),
        }


__all__ = ["Participant", "display_name"]
