"""Utility helpers for the models package."""

from __future__ import annotations

import secrets
import string
import time
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_lottery_unique_id(
    scope_id: str,
    session: Optional[Session] = None,
    suffix_length: int = 4,
    max_attempts: int = 32,
) -> str:
    """Return a public identifier of the form ``<scope>_<epoch ms>-<suffix>``.

    With a session, candidates already stored in ``lotteries.unique_id``
    are skipped.
    """
    from .lottery import LotteryActivity

    for _ in range(max_attempts):
        suffix = "".join(secrets.choice(BASE62_ALPHABET) for _ in range(suffix_length))
        candidate = f"{scope_id}_{int(time.time() * 1000)}-{suffix}"[:128]
        if session is None:
            return candidate
        taken = session.scalar(
            select(LotteryActivity.id).where(LotteryActivity.unique_id == candidate)
        )
        if taken is None:
            return candidate

    raise RuntimeError(
        "Unable to generate a unique lottery identifier after multiple attempts"
    )
