"""Exception types raised by the lottery engine.

Admission rejections and empty draws are not exceptions; they are returned as
typed results (see :mod:`luckydraw.draw.ledger` and :mod:`luckydraw.draw.engine`).
"""

from __future__ import annotations


class LotteryError(Exception):
    """Base class for every error raised by the engine."""


class NotFoundError(LotteryError, LookupError):
    """An operation referenced a lottery, warehouse, item or winner that does not exist."""


class AlreadyActiveError(LotteryError):
    """A lottery is already active in the requested scope."""

    def __init__(self, scope_id: str, lottery_id: int | None = None) -> None:
        self.scope_id = scope_id
        self.lottery_id = lottery_id
        super().__init__(f"An active lottery already exists in scope {scope_id!r}")


class AlreadyCompletedError(LotteryError):
    """The lottery has already been drawn (or is otherwise no longer active)."""

    def __init__(self, lottery_id: int) -> None:
        self.lottery_id = lottery_id
        super().__init__(f"Lottery {lottery_id} has already been drawn")


class WarehouseExistsError(LotteryError):
    """A prize warehouse with the same name already exists."""


class InvalidTransitionError(LotteryError):
    """A winner record was asked to leave a terminal state."""

    def __init__(self, record_id: int, status: str, target: str) -> None:
        self.record_id = record_id
        self.status = status
        self.target = target
        super().__init__(
            f"Winner record {record_id} cannot move from {status!r} to {target!r}"
        )


class PermissionDeniedError(LotteryError):
    """The operator is not allowed to perform the requested action."""


class SchemaError(LotteryError):
    """The database schema does not match the mapped models."""


__all__ = [
    "LotteryError",
    "NotFoundError",
    "AlreadyActiveError",
    "AlreadyCompletedError",
    "WarehouseExistsError",
    "InvalidTransitionError",
    "PermissionDeniedError",
    "SchemaError",
]
