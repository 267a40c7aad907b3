"""Database model for winner records and their prize distribution state."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.utils import dt_iso, ensure_utc
from .base import Base
from .participant import display_name

if TYPE_CHECKING:
    from .lottery import LotteryActivity
    from .prize import PrizeItem


class WinnerStatus:
    PENDING = "pending"
    SENT = "sent"
    EXPIRED = "expired"

    TERMINAL = (SENT, EXPIRED)


class WinnerRecord(Base):
    """Binds a winning participant to the prize assigned at draw time.

    Status only moves ``pending -> sent`` or ``pending -> expired``; both
    targets are terminal.
    """

    __tablename__ = "lottery_winners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    lottery_id: Mapped[int] = mapped_column(
        ForeignKey("lotteries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    prize_item_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("prize_items.id", ondelete="SET NULL"), nullable=True
    )
    """Warehouse item the prize was taken from; ``None`` for the fallback text."""

    prize_text: Mapped[str] = mapped_column(Text, nullable=False)
    """Snapshot of the prize text at assignment time."""

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=WinnerStatus.PENDING
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    lottery: Mapped["LotteryActivity"] = relationship(back_populates="winners")
    prize_item: Mapped[Optional["PrizeItem"]] = relationship()

    __table_args__ = (
        UniqueConstraint("lottery_id", "user_id", name="uq_winner_per_lottery"),
        Index("ix_lottery_winners_status_expires_at", "status", "expires_at"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            "<WinnerRecord("
            f"id={self.id}, lottery_id={self.lottery_id}, user_id={self.user_id!r}, "
            f"status={self.status!r}"
            ")>"
        )

    @property
    def display_name(self) -> str:
        return display_name(self.user_id, self.username, self.first_name, self.last_name)

    @property
    def is_terminal(self) -> bool:
        return self.status in WinnerStatus.TERMINAL

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """True when the record is still pending past its claim window."""
        if self.status != WinnerStatus.PENDING:
            return False
        now = now or datetime.now(timezone.utc)
        return ensure_utc(self.expires_at) < ensure_utc(now)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lottery_id": self.lottery_id,
            "user_id": self.user_id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "prize_item_id": self.prize_item_id,
            "prize_text": self.prize_text,
            "status": self.status,
            "assigned_at": dt_iso(self.assigned_at),
            "claimed_at": dt_iso(self.claimed_at),
            "expires_at": dt_iso(self.expires_at),
        }


__all__ = ["WinnerRecord", "WinnerStatus"]
