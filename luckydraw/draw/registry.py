"""Lottery registry: at most one active lottery per scope."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from ..db.store import LotteryStore
from ..errors import AlreadyActiveError, AlreadyCompletedError, NotFoundError
from ..models import (
    DistributionMode,
    LotteryActivity,
    LotteryStatus,
    Participant,
    WinnerRecord,
)
from ..models.utils import generate_lottery_unique_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LotteryConfig:
    """Parameters of a new lottery.

    ``winner_count`` may not exceed ``max_participants``; when fewer users
    join than there are prizes, the draw clamps the winner count instead.
    """

    scope_id: str
    title: str
    keyword: str
    max_participants: int
    winner_count: int
    creator_id: str
    distribution_mode: str = DistributionMode.CLAIM
    claim_timeout: int = 86400
    require_avatar: bool = False
    require_username: bool = False
    required_channel: Optional[str] = None
    allow_bots: bool = False
    prize_warehouse: str = "default"

    def validate(self) -> None:
        if not str(self.scope_id).strip():
            raise ValueError("scope_id must not be empty")
        if not self.title.strip():
            raise ValueError("title must not be empty")
        if not self.keyword.strip():
            raise ValueError("keyword must not be empty")
        if self.max_participants <= 0:
            raise ValueError("max_participants must be a positive integer")
        if self.winner_count <= 0:
            raise ValueError("winner_count must be a positive integer")
        if self.winner_count > self.max_participants:
            raise ValueError("winner_count cannot exceed max_participants")
        if self.distribution_mode not in DistributionMode.ALL:
            raise ValueError(
                f"distribution_mode must be one of {DistributionMode.ALL}, got {self.distribution_mode!r}"
            )
        if self.claim_timeout <= 0:
            raise ValueError("claim_timeout must be a positive number of seconds")


class LotteryRegistry:
    """Creates, looks up, completes and deletes lotteries."""

    def __init__(self, store: LotteryStore) -> None:
        self._store = store

    def create_activity(self, config: LotteryConfig) -> LotteryActivity:
        """Persist a new active lottery for ``config.scope_id``.

        Raises
        ------
        ValueError
            If the configuration is invalid.
        AlreadyActiveError
            If the scope already has an active lottery. Two concurrent calls
            for one scope cannot both succeed: the partial unique index on
            active lotteries rejects the second insert.
        """
        config.validate()
        scope_id = str(config.scope_id)
        try:
            with self._store.transaction() as session:
                existing = LotteryActivity.get_active(session, scope_id)
                if existing is not None:
                    raise AlreadyActiveError(scope_id, existing.id)
                lottery = LotteryActivity(
                    unique_id=generate_lottery_unique_id(scope_id, session),
                    scope_id=scope_id,
                    title=config.title.strip(),
                    keyword=config.keyword.strip(),
                    max_participants=config.max_participants,
                    winner_count=config.winner_count,
                    creator_id=str(config.creator_id),
                    distribution_mode=config.distribution_mode,
                    claim_timeout=config.claim_timeout,
                    require_avatar=config.require_avatar,
                    require_username=config.require_username,
                    required_channel=config.required_channel or None,
                    allow_bots=config.allow_bots,
                    prize_warehouse=config.prize_warehouse,
                )
                session.add(lottery)
                session.flush()
        except IntegrityError as exc:
            raise AlreadyActiveError(scope_id) from exc
        logger.info(
            f"Created lottery {lottery.id} ({lottery.unique_id}) in scope {scope_id}"
        )
        return lottery

    def get(self, lottery_id: int) -> LotteryActivity:
        with self._store.session() as session:
            lottery = session.get(LotteryActivity, lottery_id)
        if lottery is None:
            raise NotFoundError(f"Lottery {lottery_id} does not exist")
        return lottery

    def get_active(self, scope_id: str) -> Optional[LotteryActivity]:
        with self._store.session() as session:
            return LotteryActivity.get_active(session, str(scope_id))

    def get_latest(self, scope_id: str) -> Optional[LotteryActivity]:
        """Return the active lottery of the scope, else the most recent one."""
        stmt = (
            select(LotteryActivity)
            .where(LotteryActivity.scope_id == str(scope_id))
            .order_by(LotteryActivity.id.desc())
        )
        with self._store.session() as session:
            active = LotteryActivity.get_active(session, str(scope_id))
            if active is not None:
                return active
            return session.scalars(stmt).first()

    def complete_activity(
        self, lottery_id: int, *, now: Optional[datetime] = None
    ) -> bool:
        """Move the lottery from ``active`` to ``completed``.

        This is a compare-and-set: exactly one caller per lottery gets
        ``True``; every other caller (including later ones) gets ``False``.

        Raises
        ------
        NotFoundError
            If the lottery does not exist.
        """
        now = now or datetime.now(timezone.utc)
        with self._store.transaction() as session:
            result = session.execute(
                update(LotteryActivity)
                .where(
                    LotteryActivity.id == lottery_id,
                    LotteryActivity.status == LotteryStatus.ACTIVE,
                )
                .values(status=LotteryStatus.COMPLETED, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                logger.debug(f"Lottery {lottery_id} marked completed")
                return True
            if session.get(LotteryActivity, lottery_id) is None:
                raise NotFoundError(f"Lottery {lottery_id} does not exist")
            return False

    def delete_activity(
        self, lottery_id: int, *, now: Optional[datetime] = None
    ) -> None:
        """Delete an active lottery together with its participants and winners.

        The ``active`` to ``completed`` transition is taken inside the delete
        transaction, so a lottery that a draw already completed is left intact.

        Raises
        ------
        NotFoundError
            If the lottery does not exist.
        AlreadyCompletedError
            If the lottery is no longer active.
        """
        now = now or datetime.now(timezone.utc)
        with self._store.transaction() as session:
            result = session.execute(
                update(LotteryActivity)
                .where(
                    LotteryActivity.id == lottery_id,
                    LotteryActivity.status == LotteryStatus.ACTIVE,
                )
                .values(status=LotteryStatus.COMPLETED, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                if session.get(LotteryActivity, lottery_id) is None:
                    raise NotFoundError(f"Lottery {lottery_id} does not exist")
                raise AlreadyCompletedError(lottery_id)
            session.execute(delete(WinnerRecord).where(WinnerRecord.lottery_id == lottery_id))
            session.execute(delete(Participant).where(Participant.lottery_id == lottery_id))
            session.execute(delete(LotteryActivity).where(LotteryActivity.id == lottery_id))
        logger.info(f"Deleted lottery {lottery_id}")


__all__ = ["LotteryConfig", "LotteryRegistry"]
