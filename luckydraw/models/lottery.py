"""Database model for lottery activities."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base

if TYPE_CHECKING:
    from ..draw.eligibility import EligibilityRule
    from .participant import Participant
    from .winner import WinnerRecord


class LotteryStatus:
    ACTIVE = "active"
    COMPLETED = "completed"


class DistributionMode:
    CLAIM = "claim"  # winners contact the creator to claim
    AUTO_SEND = "auto"  # prizes are sent by direct message right after the draw

    ALL = (CLAIM, AUTO_SEND)


class LotteryActivity(Base):
    """One drawing campaign scoped to a chat."""

    __tablename__ = "lotteries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    unique_id: Mapped[str] = mapped_column(String(128), nullable=False)
    """Public identifier shown to operators."""

    scope_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    """Chat (or channel) the lottery belongs to."""

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    keyword: Mapped[str] = mapped_column(String(255), nullable=False)
    """Message text that makes a user join."""

    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    winner_count: Mapped[int] = mapped_column(Integer, nullable=False)

    participant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Admission counter. Only ever changed by a conditional UPDATE."""

    distribution_mode: Mapped[str] = mapped_column(
        String(16), nullable=False, default=DistributionMode.CLAIM
    )
    claim_timeout: Mapped[int] = mapped_column(Integer, nullable=False, default=86400)
    """Claim window in seconds."""

    require_avatar: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    require_username: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    required_channel: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    allow_bots: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    prize_warehouse: Mapped[str] = mapped_column(
        String(255), nullable=False, default="default"
    )
    """Name of the warehouse prizes are drawn from."""

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=LotteryStatus.ACTIVE
    )
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Set by the draw that completed the lottery."""

    participants: Mapped[list["Participant"]] = relationship(
        back_populates="lottery",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Participant.id",
    )
    winners: Mapped[list["WinnerRecord"]] = relationship(
        back_populates="lottery",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="WinnerRecord.id",
    )

    __table_args__ = (
        UniqueConstraint("unique_id", name="uq_lotteries_unique_id"),
        # At most one active lottery per scope.
        Index(
            "uq_lotteries_active_scope",
            "scope_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        CheckConstraint("max_participants > 0", name="max_participants_positive"),
        CheckConstraint("winner_count > 0", name="winner_count_positive"),
        CheckConstraint(
            "participant_count >= 0 AND participant_count <= max_participants",
            name="participant_count_bounded",
        ),
    )

    def __init__(
        self,
        *,
        unique_id: str,
        scope_id: str,
        title: str,
        keyword: str,
        max_participants: int,
        winner_count: int,
        creator_id: str,
        distribution_mode: str = DistributionMode.CLAIM,
        claim_timeout: int = 86400,
        require_avatar: bool = False,
        require_username: bool = False,
        required_channel: Optional[str] = None,
        allow_bots: bool = False,
        prize_warehouse: str = "default",
        status: str = LotteryStatus.ACTIVE,
        participant_count: int = 0,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.unique_id = unique_id
        self.scope_id = scope_id
        self.title = title
        self.keyword = keyword
        self.max_participants = max_participants
        self.winner_count = winner_count
        self.creator_id = creator_id
        self.distribution_mode = distribution_mode
        self.claim_timeout = claim_timeout
        self.require_avatar = require_avatar
        self.require_username = require_username
        self.required_channel = required_channel
        self.allow_bots = allow_bots
        self.prize_warehouse = prize_warehouse
        self.status = status
        self.participant_count = participant_count
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            "<LotteryActivity("
            f"id={self.id}, scope_id={self.scope_id!r}, status={self.status!r}, "
            f"participants={self.participant_count}/{self.max_participants}"
            ")>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == LotteryStatus.ACTIVE

    @property
    def is_full(self) -> bool:
        return self.participant_count >= self.max_participants

    def eligibility_rules(self) -> list["EligibilityRule"]:
        """Return the eligibility predicates this lottery requires."""
        from ..draw.eligibility import EligibilityRule

        rules: list[EligibilityRule] = []
        if not self.allow_bots:
            rules.append(EligibilityRule.NOT_BOT)
        if self.require_avatar:
            rules.append(EligibilityRule.HAS_AVATAR)
        if self.require_username:
            rules.append(EligibilityRule.HAS_USERNAME)
        if self.required_channel:
            rules.append(EligibilityRule.CHANNEL_MEMBER)
        return rules

    @classmethod
    def get_active(cls, session: Session, scope_id: str) -> Optional["LotteryActivity"]:
        """Return the active lottery of ``scope_id`` if there is one."""

        stmt = (
            select(cls)
            .where(cls.scope_id == scope_id, cls.status == LotteryStatus.ACTIVE)
            .order_by(cls.created_at.desc(), cls.id.desc())
        )
        return session.scalars(stmt).first()

    @classmethod
    def get_by_unique_id(
        cls, session: Session, unique_id: str
    ) -> Optional["LotteryActivity"]:
        return session.scalar(select(cls).where(cls.unique_id == unique_id))

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "unique_id": self.unique_id,
            "scope_id": self.scope_id,
            "title": self.title,
            "keyword": self.keyword,
            "max_participants": self.max_participants,
            "winner_count": self.winner_count,
            "participant_count": self.participant_count,
            "distribution_mode": self.distribution_mode,
            "claim_timeout": self.claim_timeout,
            "require_avatar": self.require_avatar,
            "require_username": self.require_username,
            "required_channel": self.required_channel,
            "allow_bots": self.allow_bots,
            "prize_warehouse": self.prize_warehouse,
            "status": self.status,
            "creator_id": self.creator_id,
            "created_at": dt_iso(self.created_at),
            "completed_at": dt_iso(self.completed_at),
        }


__all__ = ["LotteryActivity", "LotteryStatus", "DistributionMode"]
