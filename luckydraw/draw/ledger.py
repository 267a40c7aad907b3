"""Participant ledger: capacity-bounded admission into a lottery."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from ..db.store import LotteryStore
from ..errors import NotFoundError
from ..models import LotteryActivity, LotteryStatus, Participant
from .collaborators import Applicant
from .eligibility import EligibilityChecker

logger = logging.getLogger(__name__)


class RejectReason(enum.Enum):
    FULL = "full"
    DUPLICATE = "duplicate"
    INELIGIBLE = "ineligible"
    CLOSED = "closed"
    """The lottery was drawn (or deleted) before the request got in."""


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of :meth:`ParticipantLedger.admit`.

    Attributes
    ----------
    admitted : bool
        Whether a participant row was created.
    count : int
        Participant count after the call.
    capacity : int
        The lottery's ``max_participants``.
    reason : Optional[RejectReason]
        Why the applicant was rejected; ``None`` when admitted.
    detail : Optional[str]
        Human readable ineligibility reason.
    participant : Optional[Participant]
        The new row when admitted.
    """

    admitted: bool
    count: int
    capacity: int
    reason: Optional[RejectReason] = None
    detail: Optional[str] = None
    participant: Optional[Participant] = None

    @property
    def reached_capacity(self) -> bool:
        """True for the admission that filled the last seat."""
        return self.admitted and self.count >= self.capacity


class ParticipantLedger:
    """Admits users into lotteries without ever exceeding capacity.

    Admissions into one lottery are linearised on the lottery row: the
    capacity check and the counter increment are a single conditional
    ``UPDATE``, and the participant insert runs in the same transaction so a
    duplicate rolls the increment back. Different lotteries never contend.

    Parameters
    ----------
    store : LotteryStore
        Durable store.
    checker : Optional[EligibilityChecker], default: None
        Evaluates the lottery's eligibility rules. When omitted, applicants
        are not screened.
    clock : Optional[Callable[[], datetime]], default: None
        Source of ``joined_at`` timestamps.
    """

    def __init__(
        self,
        store: LotteryStore,
        checker: Optional[EligibilityChecker] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._checker = checker
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def admit(self, lottery_id: int, applicant: Applicant) -> AdmissionResult:
        """Try to add ``applicant`` to the lottery.

        Rejections are reported in this order: full, duplicate, ineligible.
        Eligibility lookups run outside of any transaction.

        Raises
        ------
        NotFoundError
            If the lottery does not exist.
        """
        user_id = str(applicant.user_id)
        with self._store.session() as session:
            lottery = session.get(LotteryActivity, lottery_id)
            if lottery is None:
                raise NotFoundError(f"Lottery {lottery_id} does not exist")
            already_joined = session.scalar(
                select(Participant.id).where(
                    Participant.lottery_id == lottery_id, Participant.user_id == user_id
                )
            )

        if lottery.status != LotteryStatus.ACTIVE:
            return self._reject(lottery, RejectReason.CLOSED)
        if lottery.is_full:
            return self._reject(lottery, RejectReason.FULL)
        if already_joined is not None:
            return self._reject(lottery, RejectReason.DUPLICATE)

        if self._checker is not None:
            verdict = self._checker.evaluate(applicant, lottery)
            if not verdict.eligible:
                logger.debug(
                    f"User {user_id} ineligible for lottery {lottery_id}: {verdict.rule.value}"
                )
                return self._reject(lottery, RejectReason.INELIGIBLE, verdict.reason)

        return self._insert(lottery_id, applicant)

    def _insert(self, lottery_id: int, applicant: Applicant) -> AdmissionResult:
        user_id = str(applicant.user_id)
        try:
            with self._store.transaction() as session:
                result = session.execute(
                    update(LotteryActivity)
                    .where(
                        LotteryActivity.id == lottery_id,
                        LotteryActivity.status == LotteryStatus.ACTIVE,
                        LotteryActivity.participant_count
                        < LotteryActivity.max_participants,
                    )
                    .values(participant_count=LotteryActivity.participant_count + 1)
                    .execution_options(synchronize_session=False)
                )
                lottery = session.get(LotteryActivity, lottery_id)
                if lottery is None:
                    raise NotFoundError(f"Lottery {lottery_id} does not exist")
                if result.rowcount != 1:
                    reason = (
                        RejectReason.FULL
                        if lottery.status == LotteryStatus.ACTIVE
                        else RejectReason.CLOSED
                    )
                    return self._reject(lottery, reason)

                participant = Participant(
                    lottery_id=lottery_id,
                    user_id=user_id,
                    username=applicant.username or None,
                    first_name=applicant.first_name or None,
                    last_name=applicant.last_name or None,
                    joined_at=self._clock(),
                )
                session.add(participant)
                session.flush()
                count = lottery.participant_count
                capacity = lottery.max_participants
        except IntegrityError:
            # The counter increment was rolled back with the insert.
            with self._store.session() as session:
                lottery = session.get(LotteryActivity, lottery_id)
            if lottery is None:
                raise NotFoundError(f"Lottery {lottery_id} does not exist") from None
            return self._reject(lottery, RejectReason.DUPLICATE)

        logger.debug(f"User {user_id} joined lottery {lottery_id} ({count}/{capacity})")
        return AdmissionResult(
            admitted=True, count=count, capacity=capacity, participant=participant
        )

    @staticmethod
    def _reject(
        lottery: LotteryActivity, reason: RejectReason, detail: Optional[str] = None
    ) -> AdmissionResult:
        return AdmissionResult(
            admitted=False,
            count=lottery.participant_count,
            capacity=lottery.max_participants,
            reason=reason,
            detail=detail,
        )

    def list_participants(self, lottery_id: int) -> list[Participant]:
        """Participants in join order."""
        stmt = (
            select(Participant)
            .where(Participant.lottery_id == lottery_id)
            .order_by(Participant.joined_at, Participant.id)
        )
        with self._store.session() as session:
            return list(session.scalars(stmt))

    def count(self, lottery_id: int) -> int:
        with self._store.session() as session:
            return int(
                session.scalar(
                    select(func.count(Participant.id)).where(
                        Participant.lottery_id == lottery_id
                    )
                )
                or 0
            )

    def get_participant(self, lottery_id: int, user_id: str) -> Optional[Participant]:
        with self._store.session() as session:
            return session.scalar(
                select(Participant).where(
                    Participant.lottery_id == lottery_id,
                    Participant.user_id == str(user_id),
                )
            )


__all__ = ["AdmissionResult", "ParticipantLedger", "RejectReason"]
