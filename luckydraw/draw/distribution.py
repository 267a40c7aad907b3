"""Winner records and the pending -> sent / expired prize lifecycle."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ..config import DEFAULT_FALLBACK_PRIZE_TEXT
from ..db.store import LotteryStore
from ..db.utils import ensure_utc
from ..errors import InvalidTransitionError, NotFoundError
from ..models import DistributionMode, LotteryActivity, Participant, PrizeItem
from ..models import WinnerRecord, WinnerStatus
from .collaborators import DeliveryResult, Notifier
from .inventory import PrizeInventory

logger = logging.getLogger(__name__)


def format_prize_message(lottery: LotteryActivity, record: WinnerRecord) -> str:
    """Plain text body of the prize notification sent in ``auto`` mode."""
    return (
        "Congratulations, you won!\n\n"
        f"Lottery: {lottery.title}\n"
        f"Prize: {record.prize_text}\n"
        f"Winner: {record.display_name}\n\n"
        "Thank you for taking part. Contact the organiser if you have any questions."
    )


@dataclass
class DistributionReport:
    """What a distribution pass did.

    Attributes
    ----------
    records : list[WinnerRecord]
        Winner records created, in draw order.
    deliveries : dict[str, DeliveryResult]
        Notification outcome per user id (``auto`` mode only).
    failed_user_ids : list[str]
        Winners whose record could not be created; their prize unit was
        returned to stock.
    """

    records: list[WinnerRecord] = field(default_factory=list)
    deliveries: dict[str, DeliveryResult] = field(default_factory=dict)
    failed_user_ids: list[str] = field(default_factory=list)


class DistributionManager:
    """Assigns prizes to winners and drives each record's status.

    Parameters
    ----------
    store : LotteryStore
        Durable store.
    inventory : PrizeInventory
        Source of prize units.
    notifier : Optional[Notifier], default: None
        Direct message sender used in ``auto`` mode. Without one, ``auto``
        mode records stay ``pending`` for a manual claim.
    fallback_prize_text : str
        Prize text used when the warehouse has no stock left.
    send_interval : float, default: 0.0
        Seconds to wait between two notifications.
    clock : Optional[Callable[[], datetime]], default: None
        Source of timestamps; defaults to the current UTC time.
    sleep : Callable[[float], None], default: time.sleep
        Used for the pause between notifications.
    """

    def __init__(
        self,
        store: LotteryStore,
        inventory: PrizeInventory,
        notifier: Optional[Notifier] = None,
        *,
        fallback_prize_text: str = DEFAULT_FALLBACK_PRIZE_TEXT,
        send_interval: float = 0.0,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._inventory = inventory
        self._notifier = notifier
        self._fallback_prize_text = fallback_prize_text
        self._send_interval = send_interval
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def distribute(
        self, lottery: LotteryActivity, winners: Sequence[Participant]
    ) -> DistributionReport:
        """Create a pending record with a prize for every winner, in order.

        In ``auto`` mode each winner is then notified; a delivered message
        moves the record to ``sent``, a failed one leaves it ``pending``.
        Notification failures never release the prize.
        """
        report = DistributionReport()
        for participant in winners:
            record = self._assign(lottery, participant)
            if record is None:
                report.failed_user_ids.append(participant.user_id)
            else:
                report.records.append(record)

        if lottery.distribution_mode == DistributionMode.AUTO_SEND:
            report.deliveries = self._send_all(lottery, report.records)
        return report

    def _assign(
        self, lottery: LotteryActivity, participant: Participant
    ) -> Optional[WinnerRecord]:
        item = self._inventory.allocate(lottery.prize_warehouse)
        if item is None:
            logger.info(
                f"Warehouse {lottery.prize_warehouse!r} is empty; using fallback prize for user {participant.user_id}"
            )
        now = self._now()
        try:
            with self._store.transaction() as session:
                record = WinnerRecord(
                    lottery_id=lottery.id,
                    user_id=participant.user_id,
                    username=participant.username,
                    first_name=participant.first_name,
                    last_name=participant.last_name,
                    prize_item_id=item.id if item is not None else None,
                    prize_text=item.text if item is not None else self._fallback_prize_text,
                    status=WinnerStatus.PENDING,
                    assigned_at=now,
                    expires_at=now + timedelta(seconds=lottery.claim_timeout),
                )
                session.add(record)
                session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                f"Could not record winner {participant.user_id} of lottery {lottery.id}: {exc}"
            )
            if item is not None:
                self._release(item)
            return None
        return record

    def _release(self, item: PrizeItem) -> None:
        try:
            self._inventory.restock(item.id)
        except NotFoundError:
            logger.warning(f"Prize item {item.id} was removed before its unit could be returned")
            return
        logger.warning(f"Returned one unit of prize item {item.id} to stock")

    def _send_all(
        self, lottery: LotteryActivity, records: Sequence[WinnerRecord]
    ) -> dict[str, DeliveryResult]:
        deliveries: dict[str, DeliveryResult] = {}
        for index, record in enumerate(records):
            if index and self._send_interval > 0:
                self._sleep(self._send_interval)
            result = self._notify(lottery, record)
            deliveries[record.user_id] = result
            if result.delivered:
                try:
                    self._transition(record, WinnerStatus.SENT)
                except InvalidTransitionError:
                    # claimed manually while the message was in flight
                    logger.debug(f"Winner record {record.id} already left pending")
            else:
                logger.warning(
                    f"Prize notification to user {record.user_id} failed: {result.reason}"
                )
        return deliveries

    def _notify(self, lottery: LotteryActivity, record: WinnerRecord) -> DeliveryResult:
        if self._notifier is None:
            return DeliveryResult.failed("no notifier configured")
        try:
            return self._notifier.send_direct_message(
                record.user_id, format_prize_message(lottery, record)
            )
        except Exception as exc:
            return DeliveryResult.failed(str(exc) or exc.__class__.__name__)

    def _transition(self, record: WinnerRecord, target: str) -> None:
        """Move a pending record to ``target`` and mirror it on ``record``."""
        now = self._now()
        values = {"status": target}
        if target == WinnerStatus.SENT:
            values["claimed_at"] = now
        with self._store.transaction() as session:
            result = session.execute(
                update(WinnerRecord)
                .where(
                    WinnerRecord.id == record.id,
                    WinnerRecord.status == WinnerStatus.PENDING,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                current = session.get(WinnerRecord, record.id)
                if current is None:
                    raise NotFoundError(f"Winner record {record.id} does not exist")
                raise InvalidTransitionError(record.id, current.status, target)
        record.status = target
        if "claimed_at" in values:
            record.claimed_at = now

    # -------- operator actions --------
    def list_winners(self, lottery_id: int) -> list[WinnerRecord]:
        stmt = (
            select(WinnerRecord)
            .where(WinnerRecord.lottery_id == lottery_id)
            .order_by(WinnerRecord.assigned_at, WinnerRecord.id)
        )
        with self._store.session() as session:
            return list(session.scalars(stmt))

    def find_winner(self, lottery_id: int, user_ref: str) -> Optional[WinnerRecord]:
        """Look a winner up by user id or ``@username``."""
        user_ref = str(user_ref).strip()
        if user_ref.startswith("@"):
            criteria = WinnerRecord.username == user_ref[1:]
        else:
            criteria = WinnerRecord.user_id == user_ref
        with self._store.session() as session:
            return session.scalar(
                select(WinnerRecord).where(WinnerRecord.lottery_id == lottery_id, criteria)
            )

    def mark_claimed(self, lottery_id: int, user_ref: str) -> WinnerRecord:
        """Record that the winner received the prize (``pending -> sent``).

        Raises
        ------
        NotFoundError
            If the user is not a winner of the lottery.
        InvalidTransitionError
            If the record is already ``sent`` or ``expired``.
        """
        record = self.find_winner(lottery_id, user_ref)
        if record is None:
            raise NotFoundError(f"No winner {user_ref!r} in lottery {lottery_id}")
        self._transition(record, WinnerStatus.SENT)
        logger.info(f"Winner {record.user_id} of lottery {lottery_id} marked as claimed")
        return record

    def expire_overdue(
        self, now: Optional[datetime] = None, *, lottery_id: Optional[int] = None
    ) -> int:
        """Expire pending records whose claim window has passed.

        ``sent`` records are never touched. Returns the number of records
        expired.
        """
        now = ensure_utc(now) if now is not None else self._now()
        stmt = (
            update(WinnerRecord)
            .where(
                WinnerRecord.status == WinnerStatus.PENDING,
                WinnerRecord.expires_at < now,
            )
            .values(status=WinnerStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        if lottery_id is not None:
            stmt = stmt.where(WinnerRecord.lottery_id == lottery_id)
        with self._store.transaction() as session:
            expired = session.execute(stmt).rowcount
        if expired:
            logger.info(f"Expired {expired} unclaimed prize(s)")
        return expired


__all__ = ["DistributionManager", "DistributionReport", "format_prize_message"]
