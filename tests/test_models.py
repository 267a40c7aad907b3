import re
import unittest
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from helpers import T0, StoreTestCase
from luckydraw.draw import EligibilityRule
from luckydraw.models import (
    LotteryActivity,
    LotteryStatus,
    Participant,
    PrizeItem,
    PrizeWarehouse,
    WinnerRecord,
    WinnerStatus,
)
from luckydraw.models.participant import display_name
from luckydraw.models.utils import generate_lottery_unique_id


def _lottery(scope_id="chat-1", unique_id=None, **overrides):
    values = dict(
        unique_id=unique_id or f"{scope_id}_1",
        scope_id=scope_id,
        title="Giveaway",
        keyword="join",
        max_participants=5,
        winner_count=1,
        creator_id="admin-1",
    )
    values.update(overrides)
    return LotteryActivity(**values)


class LotteryModelTests(StoreTestCase):
    def test_defaults(self):
        with self.store.transaction() as session:
            lottery = _lottery()
            session.add(lottery)
            session.flush()
        self.assertEqual(lottery.status, LotteryStatus.ACTIVE)
        self.assertEqual(lottery.participant_count, 0)
        self.assertEqual(lottery.prize_warehouse, "default")
        self.assertEqual(lottery.claim_timeout, 86400)
        self.assertIsNone(lottery.completed_at)
        self.assertTrue(lottery.is_active)
        self.assertFalse(lottery.is_full)

    def test_only_one_active_lottery_per_scope(self):
        with self.store.transaction() as session:
            session.add(_lottery(unique_id="a"))
        with self.assertRaises(IntegrityError):
            with self.store.transaction() as session:
                session.add(_lottery(unique_id="b"))

    def test_completed_lotteries_do_not_block_the_scope(self):
        with self.store.transaction() as session:
            session.add(_lottery(unique_id="old", status=LotteryStatus.COMPLETED))
            session.add(_lottery(unique_id="older", status=LotteryStatus.COMPLETED))
            session.add(_lottery(unique_id="new"))
            session.add(_lottery(scope_id="chat-2", unique_id="other"))
        with self.store.session() as session:
            active = LotteryActivity.get_active(session, "chat-1")
            self.assertIsNotNone(active)
            assert active is not None
            self.assertEqual(active.unique_id, "new")
            self.assertEqual(LotteryActivity.get_by_unique_id(session, "old").status, "completed")

    def test_capacity_check_constraint(self):
        with self.assertRaises(IntegrityError):
            with self.store.transaction() as session:
                session.add(_lottery(max_participants=2, participant_count=3))

    def test_eligibility_rules_follow_requirements(self):
        self.assertEqual(_lottery().eligibility_rules(), [EligibilityRule.NOT_BOT])
        lottery = _lottery(
            allow_bots=True,
            require_avatar=True,
            require_username=True,
            required_channel="@news",
        )
        self.assertEqual(
            lottery.eligibility_rules(),
            [
                EligibilityRule.HAS_AVATAR,
                EligibilityRule.HAS_USERNAME,
                EligibilityRule.CHANNEL_MEMBER,
            ],
        )

    def test_generate_unique_id_format(self):
        value = generate_lottery_unique_id("-100123")
        self.assertRegex(value, r"^-100123_\d{13}-[0-9A-Za-z]{4}$")

    def test_generate_unique_id_retries_on_collision(self):
        with self.store.transaction() as session:
            session.add(_lottery(unique_id="chat-1_1700000000000-AAAA"))

        with self.store.session() as session:
            with patch("luckydraw.models.utils.time.time", return_value=1700000000.0), patch(
                "luckydraw.models.utils.secrets.choice", side_effect=["A"] * 4 + ["B"] * 4
            ):
                value = generate_lottery_unique_id("chat-1", session)
        self.assertEqual(value, "chat-1_1700000000000-BBBB")


class ParticipantModelTests(StoreTestCase):
    def test_duplicate_participant_rejected(self):
        lottery = self.create_lottery()
        with self.store.transaction() as session:
            session.add(Participant(lottery_id=lottery.id, user_id="1"))
        with self.assertRaises(IntegrityError):
            with self.store.transaction() as session:
                session.add(Participant(lottery_id=lottery.id, user_id="1"))

    def test_display_name(self):
        self.assertEqual(display_name("1", "alice", "Alice", None), "@alice")
        self.assertEqual(display_name("1", None, "Alice", "Smith"), "Alice Smith")
        self.assertEqual(display_name("1", None, None, "Smith"), "Smith")
        self.assertEqual(display_name("42", None, None, None), "user 42")


class PrizeModelTests(StoreTestCase):
    def test_stock_cannot_go_negative(self):
        with self.store.transaction() as session:
            warehouse = PrizeWarehouse(name="main")
            session.add(warehouse)
            session.flush()
            item = PrizeItem(warehouse_id=warehouse.id, text="Mug", stock=0)
            session.add(item)
        with self.assertRaises(IntegrityError):
            with self.store.transaction() as session:
                session.get(PrizeItem, item.id).stock = -1

    def test_deleting_an_item_keeps_the_winner_record(self):
        lottery = self.create_lottery()
        with self.store.transaction() as session:
            warehouse = PrizeWarehouse(name="main")
            session.add(warehouse)
            session.flush()
            item = PrizeItem(warehouse_id=warehouse.id, text="Mug", stock=1)
            session.add(item)
            session.flush()
            record = WinnerRecord(
                lottery_id=lottery.id,
                user_id="1",
                prize_item_id=item.id,
                prize_text="Mug",
                assigned_at=T0,
                expires_at=T0 + timedelta(hours=1),
            )
            session.add(record)
        with self.store.transaction() as session:
            session.delete(session.get(PrizeWarehouse, warehouse.id))
        with self.store.session() as session:
            kept = session.get(WinnerRecord, record.id)
            self.assertIsNotNone(kept)
            assert kept is not None
            self.assertIsNone(kept.prize_item_id)
            self.assertEqual(kept.prize_text, "Mug")


class WinnerModelTests(unittest.TestCase):
    def _record(self, status=WinnerStatus.PENDING):
        return WinnerRecord(
            lottery_id=1,
            user_id="7",
            prize_text="Mug",
            status=status,
            assigned_at=T0,
            expires_at=T0 + timedelta(hours=1),
        )

    def test_is_overdue_only_for_pending(self):
        later = T0 + timedelta(hours=1, seconds=1)
        self.assertTrue(self._record().is_overdue(later))
        self.assertFalse(self._record().is_overdue(T0 + timedelta(minutes=59)))
        self.assertFalse(self._record(WinnerStatus.SENT).is_overdue(later))

    def test_is_overdue_accepts_naive_timestamps(self):
        record = self._record()
        record.expires_at = record.expires_at.replace(tzinfo=None)
        self.assertTrue(record.is_overdue(T0 + timedelta(hours=2)))

    def test_terminal_states(self):
        self.assertFalse(self._record().is_terminal)
        self.assertTrue(self._record(WinnerStatus.SENT).is_terminal)
        self.assertTrue(self._record(WinnerStatus.EXPIRED).is_terminal)
        self.assertEqual(self._record().display_name, "user 7")


if __name__ == "__main__":
    unittest.main()
