"""Operator level workflows, one per chat command.

Every function takes the :class:`~luckydraw.db.store.LotteryStore` first and
returns model objects or typed results; rendering them is the caller's job.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .config import Settings
from .db.store import LotteryStore
from .draw import (
    AdmissionResult,
    Applicant,
    DistributionManager,
    DrawEngine,
    DrawResult,
    EligibilityChecker,
    EligibilityResolver,
    LotteryConfig,
    LotteryRegistry,
    Notifier,
    ParticipantLedger,
    PrizeInventory,
    WarehouseSummary,
)
from .errors import AlreadyCompletedError, NotFoundError, PermissionDeniedError
from .models import (
    DistributionMode,
    LotteryActivity,
    Participant,
    PrizeItem,
    PrizeWarehouse,
    WinnerRecord,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinOutcome:
    """Result of :func:`join_lottery`.

    ``draw`` is set when this admission filled the last seat and triggered
    the draw.
    """

    lottery: LotteryActivity
    admission: AdmissionResult
    draw: Optional[DrawResult] = None


def _draw_engine(
    store: LotteryStore,
    settings: Settings,
    notifier: Optional[Notifier],
    rng: Optional[random.Random],
    clock: Optional[Callable[[], datetime]],
) -> DrawEngine:
    distribution = DistributionManager(
        store,
        PrizeInventory(store),
        notifier,
        fallback_prize_text=settings.fallback_prize_text,
        send_interval=settings.send_interval,
        clock=clock,
    )
    return DrawEngine(store, distribution, rng=rng, clock=clock)


def _distribution(store: LotteryStore, settings: Settings) -> DistributionManager:
    return DistributionManager(
        store, PrizeInventory(store), fallback_prize_text=settings.fallback_prize_text
    )


def _require_active(store: LotteryStore, scope_id: str) -> LotteryActivity:
    lottery = LotteryRegistry(store).get_active(scope_id)
    if lottery is None:
        raise NotFoundError(f"No active lottery in scope {scope_id!r}")
    return lottery


def _require_latest(store: LotteryStore, scope_id: str) -> LotteryActivity:
    lottery = LotteryRegistry(store).get_latest(scope_id)
    if lottery is None:
        raise NotFoundError(f"No lottery in scope {scope_id!r}")
    return lottery


# -------- lotteries --------
def create_lottery(
    store: LotteryStore,
    scope_id: str,
    creator_id: str,
    title: str,
    keyword: str,
    max_participants: int,
    winner_count: int,
    *,
    distribution_mode: str = DistributionMode.AUTO_SEND,
    claim_timeout: Optional[int] = None,
    require_avatar: bool = False,
    require_username: bool = False,
    required_channel: Optional[str] = None,
    allow_bots: bool = False,
    warehouse: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> LotteryActivity:
    """Start a lottery in ``scope_id``.

    Parameters
    ----------
    store : LotteryStore
        Open store.
    scope_id : str
        Chat the lottery belongs to.
    creator_id : str
        Operator creating the lottery; the only one allowed to delete it.
    title, keyword : str
        Display title and the keyword users send to join.
    max_participants, winner_count : int
        Capacity and number of prizes to hand out.
    distribution_mode : str, default: ``"auto"``
        ``"auto"`` messages the winners, ``"claim"`` waits for them.
    claim_timeout : Optional[int]
        Claim window in seconds; defaults to ``settings.claim_timeout``.
    warehouse : Optional[str]
        Warehouse name or 1-based index; defaults to
        ``settings.default_warehouse``.

    Returns
    -------
    LotteryActivity
        The new active lottery.

    Raises
    ------
    AlreadyActiveError
        If the scope already has an active lottery.
    NotFoundError
        If ``warehouse`` does not resolve to an existing warehouse.
    ValueError
        If the parameters are invalid.
    """
    settings = settings or Settings.from_env()
    if warehouse is not None and str(warehouse).strip():
        warehouse_name = PrizeInventory(store).resolve_warehouse(warehouse)
    else:
        warehouse_name = settings.default_warehouse

    config = LotteryConfig(
        scope_id=str(scope_id),
        title=title,
        keyword=keyword,
        max_participants=max_participants,
        winner_count=winner_count,
        creator_id=str(creator_id),
        distribution_mode=distribution_mode,
        claim_timeout=claim_timeout if claim_timeout is not None else settings.claim_timeout,
        require_avatar=require_avatar,
        require_username=require_username,
        required_channel=required_channel,
        allow_bots=allow_bots,
        prize_warehouse=warehouse_name,
    )
    return LotteryRegistry(store).create_activity(config)


def lottery_status(store: LotteryStore, scope_id: str) -> Optional[LotteryActivity]:
    """Return the active lottery of the scope, else its most recent one."""
    return LotteryRegistry(store).get_latest(scope_id)


def join_lottery(
    store: LotteryStore,
    scope_id: str,
    applicant: Applicant,
    keyword: Optional[str] = None,
    *,
    resolver: Optional[EligibilityResolver] = None,
    notifier: Optional[Notifier] = None,
    settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Optional[JoinOutcome]:
    """Admit ``applicant`` into the active lottery of ``scope_id``.

    Returns ``None`` when the scope has no active lottery or ``keyword`` is
    given and does not match the lottery keyword (the message was not a join
    request). The admission that fills the last seat triggers the draw; if a
    manual draw got there first, the outcome simply carries no draw.
    """
    settings = settings or Settings.from_env()
    lottery = LotteryRegistry(store).get_active(scope_id)
    if lottery is None:
        return None
    if keyword is not None and keyword.strip() != lottery.keyword:
        return None

    checker = (
        EligibilityChecker(resolver, fail_closed=settings.eligibility_fail_closed)
        if resolver is not None
        else None
    )
    ledger = ParticipantLedger(store, checker, clock=clock)
    admission = ledger.admit(lottery.id, applicant)
    if not admission.reached_capacity:
        return JoinOutcome(lottery=lottery, admission=admission)

    logger.info(f"Lottery {lottery.id} is full; drawing")
    try:
        result = _draw_engine(store, settings, notifier, rng, clock).draw(lottery.id)
    except AlreadyCompletedError:
        logger.debug(f"Lottery {lottery.id} was drawn by another request")
        return JoinOutcome(lottery=lottery, admission=admission)
    return JoinOutcome(lottery=result.lottery, admission=admission, draw=result)


def list_participants(store: LotteryStore, scope_id: str) -> list[Participant]:
    lottery = _require_latest(store, scope_id)
    return ParticipantLedger(store).list_participants(lottery.id)


def force_draw(
    store: LotteryStore,
    scope_id: str,
    *,
    notifier: Optional[Notifier] = None,
    settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> DrawResult:
    """Draw the active lottery of the scope now, whatever its fill level.

    Raises
    ------
    NotFoundError
        If the scope has no active lottery.
    AlreadyCompletedError
        If a capacity-triggered draw completed it in the meantime.
    """
    settings = settings or Settings.from_env()
    lottery = _require_active(store, scope_id)
    return _draw_engine(store, settings, notifier, rng, clock).draw(lottery.id)


def delete_lottery(
    store: LotteryStore,
    scope_id: str,
    operator_id: str,
    *,
    creator_only: bool = True,
) -> LotteryActivity:
    """Delete the active lottery of the scope with its participants and winners.

    Raises
    ------
    NotFoundError
        If the scope has no active lottery.
    PermissionDeniedError
        If ``creator_only`` is set and ``operator_id`` did not create it.
    AlreadyCompletedError
        If a draw completed the lottery before the delete took effect.
    """
    lottery = _require_active(store, scope_id)
    if creator_only and str(operator_id) != lottery.creator_id:
        raise PermissionDeniedError(
            f"Only the creator ({lottery.creator_id}) can delete lottery {lottery.id}"
        )
    LotteryRegistry(store).delete_activity(lottery.id)
    return lottery


# -------- winners --------
def list_winners(
    store: LotteryStore,
    scope_id: str,
    *,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> list[WinnerRecord]:
    """Winners of the scope's latest lottery, after expiring overdue claims."""
    settings = settings or Settings.from_env()
    lottery = _require_latest(store, scope_id)
    distribution = _distribution(store, settings)
    distribution.expire_overdue(now, lottery_id=lottery.id)
    return distribution.list_winners(lottery.id)


def mark_claimed(
    store: LotteryStore,
    scope_id: str,
    user_ref: str,
    *,
    settings: Optional[Settings] = None,
) -> WinnerRecord:
    """Mark the prize of ``user_ref`` (user id or ``@username``) as handed over."""
    settings = settings or Settings.from_env()
    lottery = _require_latest(store, scope_id)
    return _distribution(store, settings).mark_claimed(lottery.id, user_ref)


def expire_claims(
    store: LotteryStore,
    now: Optional[datetime] = None,
    *,
    settings: Optional[Settings] = None,
) -> int:
    """Expire every overdue pending prize across all lotteries."""
    settings = settings or Settings.from_env()
    return _distribution(store, settings).expire_overdue(now)


# -------- prize warehouses --------
def create_warehouse(store: LotteryStore, name: str) -> PrizeWarehouse:
    return PrizeInventory(store).create_warehouse(name)


def add_prize(store: LotteryStore, warehouse: str, text: str, stock: int = 1) -> PrizeItem:
    """Add a prize to a warehouse given by name or 1-based index."""
    inventory = PrizeInventory(store)
    return inventory.add_prize(inventory.resolve_warehouse(warehouse), text, stock)


def list_warehouses(store: LotteryStore) -> list[WarehouseSummary]:
    return PrizeInventory(store).list_warehouses()


def list_prizes(store: LotteryStore, warehouse: str) -> list[PrizeItem]:
    inventory = PrizeInventory(store)
    return inventory.list_prizes(inventory.resolve_warehouse(warehouse))


def clear_warehouse(store: LotteryStore, warehouse: str) -> int:
    inventory = PrizeInventory(store)
    return inventory.clear_warehouse(inventory.resolve_warehouse(warehouse))


def clear_all_warehouses(store: LotteryStore) -> int:
    return PrizeInventory(store).clear_all()


__all__ = [
    "JoinOutcome",
    "add_prize",
    "clear_all_warehouses",
    "clear_warehouse",
    "create_lottery",
    "create_warehouse",
    "delete_lottery",
    "expire_claims",
    "force_draw",
    "join_lottery",
    "list_participants",
    "list_prizes",
    "list_warehouses",
    "list_winners",
    "lottery_status",
    "mark_claimed",
]
