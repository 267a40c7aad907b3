"""Draw engine: selects the winners of a lottery exactly once."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence, TypeVar

from ..db.store import LotteryStore
from ..errors import AlreadyCompletedError
from ..models import LotteryActivity, WinnerRecord
from .collaborators import DeliveryResult
from .distribution import DistributionManager
from .ledger import ParticipantLedger
from .registry import LotteryRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def select_winners(pool: Sequence[T], k: int, rng: random.Random) -> list[T]:
    """Pick ``k`` items uniformly without replacement.

    The whole pool is Fisher-Yates shuffled and the first ``k`` items are
    returned, so every item has probability ``k / len(pool)`` of selection.
    ``k`` is clamped to ``[0, len(pool)]``.
    """
    shuffled = list(pool)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randrange(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled[: max(0, min(k, len(shuffled)))]


@dataclass
class DrawResult:
    """Value object describing a completed draw.

    Attributes
    ----------
    lottery : LotteryActivity
        The lottery as it was after being marked completed.
    participant_count : int
        Size of the participant snapshot the winners were drawn from.
    winners : list[WinnerRecord]
        Winner records in draw order.
    deliveries : dict[str, DeliveryResult]
        Notification outcome per user id (``auto`` mode).
    failed_user_ids : list[str]
        Drawn users whose winner record could not be written.
    """

    lottery: LotteryActivity
    participant_count: int
    winners: list[WinnerRecord] = field(default_factory=list)
    deliveries: dict[str, DeliveryResult] = field(default_factory=dict)
    failed_user_ids: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when nobody had joined; a valid outcome with zero winners."""
        return self.participant_count == 0


class DrawEngine:
    """Engine that closes a lottery, draws its winners and distributes prizes.

    Parameters
    ----------
    store : LotteryStore
        Durable store.
    distribution : DistributionManager
        Receives the drawn winners.
    registry : Optional[LotteryRegistry], default: None
        Registry used for the ``active -> completed`` gate.
    ledger : Optional[ParticipantLedger], default: None
        Source of the participant snapshot.
    rng : Optional[random.Random], default: None
        Randomness source. Defaults to :class:`random.SystemRandom`.
    clock : Optional[Callable[[], datetime]], default: None
        Source of the completion timestamp.
    """

    def __init__(
        self,
        store: LotteryStore,
        distribution: DistributionManager,
        *,
        registry: Optional[LotteryRegistry] = None,
        ledger: Optional[ParticipantLedger] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._distribution = distribution
        self._registry = registry or LotteryRegistry(store)
        self._ledger = ledger or ParticipantLedger(store)
        self._rng = rng or random.SystemRandom()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def draw(self, lottery_id: int) -> DrawResult:
        """Draw the winners of ``lottery_id``.

        Notes
        -----
        1. Atomically flip the lottery from ``active`` to ``completed``. Only
           one caller can win this; it is the sole guard against a
           capacity-triggered draw racing a manual one.
        2. Load the participant snapshot. No participants is a valid, empty
           outcome: no winners and no prizes consumed.
        3. Shuffle the snapshot and take ``min(winner_count, participants)``.
        4. Hand the winners, in draw order, to the distribution manager.

        Raises
        ------
        AlreadyCompletedError
            If the lottery is no longer active.
        NotFoundError
            If the lottery does not exist.
        """
        if not self._registry.complete_activity(lottery_id, now=self._clock()):
            raise AlreadyCompletedError(lottery_id)

        lottery = self._registry.get(lottery_id)
        participants = self._ledger.list_participants(lottery_id)
        if not participants:
            logger.info(f"Lottery {lottery_id} drawn with no participants")
            return DrawResult(lottery=lottery, participant_count=0)

        k = min(lottery.winner_count, len(participants))
        winners = select_winners(participants, k, self._rng)
        logger.info(
            f"Lottery {lottery_id} drawn: {len(winners)} winner(s) from {len(participants)} participant(s)"
        )

        report = self._distribution.distribute(lottery, winners)
        return DrawResult(
            lottery=lottery,
            participant_count=len(participants),
            winners=report.records,
            deliveries=report.deliveries,
            failed_user_ids=report.failed_user_ids,
        )


__all__ = ["DrawEngine", "DrawResult", "select_winners"]
