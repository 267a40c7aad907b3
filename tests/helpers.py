"""Shared fixtures for the lottery test cases."""

from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from luckydraw.config import Settings
from luckydraw.db.engine import make_engine
from luckydraw.db.store import LotteryStore
from luckydraw.draw import Applicant, DeliveryResult, LotteryConfig, LotteryRegistry
from luckydraw.models import Base, DistributionMode, LotteryActivity

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubResolver:
    """In-memory eligibility resolver; ``failing`` names lookups that raise."""

    def __init__(
        self,
        *,
        bots=(),
        without_avatar=(),
        without_username=(),
        members: Optional[dict[str, set]] = None,
        failing=(),
    ):
        self.bots = set(bots)
        self.without_avatar = set(without_avatar)
        self.without_username = set(without_username)
        self.members = members or {}
        self.failing = set(failing)
        self.calls: list[str] = []

    def _lookup(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise RuntimeError(f"{name} lookup failed")

    def has_avatar(self, user_id: str) -> bool:
        self._lookup("has_avatar")
        return user_id not in self.without_avatar

    def has_username(self, user_id: str) -> bool:
        self._lookup("has_username")
        return user_id not in self.without_username

    def is_channel_member(self, channel_id: str, user_id: str) -> bool:
        self._lookup("is_channel_member")
        return user_id in self.members.get(channel_id, set())

    def is_bot(self, user_id: str) -> bool:
        self._lookup("is_bot")
        return user_id in self.bots


class RecordingNotifier:
    def __init__(self, *, fail_for=(), raise_for=()):
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)
        self.sent: list[tuple[str, str]] = []

    def send_direct_message(self, user_id: str, text: str) -> DeliveryResult:
        if user_id in self.raise_for:
            raise ConnectionError("socket closed")
        if user_id in self.fail_for:
            return DeliveryResult.failed("bot was blocked by the user")
        self.sent.append((user_id, text))
        return DeliveryResult.ok()


def applicant(user_id, username: Optional[str] = None) -> Applicant:
    return Applicant(
        user_id=str(user_id),
        username=username if username is not None else f"user{user_id}",
        first_name=f"First{user_id}",
    )


def make_settings(**overrides) -> Settings:
    values = dict(send_interval=0.0, default_warehouse="default")
    values.update(overrides)
    return Settings(**values)


class StoreTestCase(unittest.TestCase):
    """Opens a store on a fresh SQLite file per test.

    A file (not ``:memory:``) is used so that worker threads share one
    database through separate connections.
    """

    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.database_url = f"sqlite:///{Path(self._tmpdir.name) / 'lottery.db'}"
        self.engine = make_engine(self.database_url, busy_timeout=30)
        Base.metadata.create_all(self.engine)
        self.store = LotteryStore(engine=self.engine).open()

    def tearDown(self) -> None:
        self.store.close()
        self.engine.dispose()
        self._tmpdir.cleanup()

    def create_lottery(self, scope_id: str = "chat-1", **overrides) -> LotteryActivity:
        values = dict(
            scope_id=scope_id,
            title="Weekly giveaway",
            keyword="join",
            max_participants=10,
            winner_count=1,
            creator_id="admin-1",
            distribution_mode=DistributionMode.CLAIM,
            claim_timeout=3600,
            allow_bots=True,
        )
        values.update(overrides)
        return LotteryRegistry(self.store).create_activity(LotteryConfig(**values))
