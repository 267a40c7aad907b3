import random
import unittest
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import func, select

from helpers import T0, FakeClock, StoreTestCase, applicant
from luckydraw.draw import (
    DistributionManager,
    DrawEngine,
    LotteryRegistry,
    ParticipantLedger,
    PrizeInventory,
    select_winners,
)
from luckydraw.errors import AlreadyCompletedError, NotFoundError
from luckydraw.models import LotteryStatus, PrizeItem, WinnerRecord


class SelectWinnersTests(unittest.TestCase):
    def test_selection_is_without_replacement(self):
        picked = select_winners(list(range(10)), 4, random.Random(1))
        self.assertEqual(len(picked), 4)
        self.assertEqual(len(set(picked)), 4)

    def test_k_is_clamped(self):
        self.assertEqual(sorted(select_winners([1, 2, 3], 10, random.Random(0))), [1, 2, 3])
        self.assertEqual(select_winners([1, 2, 3], 0, random.Random(0)), [])
        self.assertEqual(select_winners([], 2, random.Random(0)), [])

    def test_pool_is_not_mutated(self):
        pool = [1, 2, 3, 4]
        select_winners(pool, 2, random.Random(3))
        self.assertEqual(pool, [1, 2, 3, 4])

    def test_selection_is_uniform(self):
        n, k, trials = 10, 3, 20000
        counts: Counter = Counter()
        rng = random.Random(20260101)
        for _ in range(trials):
            counts.update(select_winners(range(n), k, rng))
        for member in range(n):
            self.assertAlmostEqual(counts[member] / trials, k / n, delta=0.02)


class DrawEngineTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.clock = FakeClock()
        self.inventory = PrizeInventory(self.store)
        self.inventory.create_warehouse("default")
        self.ledger = ParticipantLedger(self.store, clock=self.clock)

    def _engine(self, rng=None) -> DrawEngine:
        distribution = DistributionManager(
            self.store,
            self.inventory,
            fallback_prize_text="Thanks for playing",
            clock=self.clock,
        )
        return DrawEngine(self.store, distribution, rng=rng, clock=self.clock)

    def _admit(self, lottery, *user_ids):
        for user_id in user_ids:
            self.assertTrue(self.ledger.admit(lottery.id, applicant(user_id)).admitted)

    def test_draw_picks_winners_and_completes(self):
        lottery = self.create_lottery(max_participants=3, winner_count=2)
        self._admit(lottery, 1, 2, 3)
        engine = self._engine()

        result = engine.draw(lottery.id)

        self.assertFalse(result.is_empty)
        self.assertEqual(result.participant_count, 3)
        self.assertEqual(len(result.winners), 2)
        self.assertEqual(len({w.user_id for w in result.winners}), 2)
        self.assertTrue({w.user_id for w in result.winners} <= {"1", "2", "3"})
        self.assertEqual(result.lottery.status, LotteryStatus.COMPLETED)
        self.assertEqual(
            LotteryRegistry(self.store).get(lottery.id).status, LotteryStatus.COMPLETED
        )
        with self.assertRaises(AlreadyCompletedError):
            engine.draw(lottery.id)

    def test_draw_without_participants_is_empty(self):
        lottery = self.create_lottery(max_participants=5, winner_count=2)
        self.inventory.add_prize("default", "Mug", 3)

        result = self._engine().draw(lottery.id)

        self.assertTrue(result.is_empty)
        self.assertEqual(result.winners, [])
        self.assertEqual(
            LotteryRegistry(self.store).get(lottery.id).status, LotteryStatus.COMPLETED
        )
        with self.store.session() as session:
            self.assertEqual(session.scalar(select(func.count(WinnerRecord.id))), 0)
            self.assertEqual(session.scalar(select(PrizeItem.stock)), 3)

    def test_winner_count_is_clamped_to_participants(self):
        lottery = self.create_lottery(max_participants=10, winner_count=5)
        self._admit(lottery, 1, 2)
        result = self._engine().draw(lottery.id)
        self.assertEqual(sorted(w.user_id for w in result.winners), ["1", "2"])

    def test_draw_uses_injected_randomness(self):
        picks = []
        for scope in ("chat-a", "chat-b"):
            lottery = self.create_lottery(scope, max_participants=8, winner_count=3)
            self._admit(lottery, *range(8))
            result = self._engine(rng=random.Random(42)).draw(lottery.id)
            picks.append([w.user_id for w in result.winners])
        self.assertEqual(picks[0], picks[1])

    def test_missing_lottery(self):
        with self.assertRaises(NotFoundError):
            self._engine().draw(12345)

    def test_concurrent_draws_succeed_exactly_once(self):
        lottery = self.create_lottery(max_participants=6, winner_count=3)
        self._admit(lottery, *range(6))
        self.inventory.add_prize("default", "Mug", 10)
        engine = self._engine()

        def attempt(_):
            try:
                return engine.draw(lottery.id)
            except AlreadyCompletedError:
                return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(8)))

        successes = [r for r in results if r is not None]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(successes[0].winners), 3)
        with self.store.session() as session:
            self.assertEqual(session.scalar(select(func.count(WinnerRecord.id))), 3)
            self.assertEqual(session.scalar(select(PrizeItem.stock)), 7)

    def test_completed_at_comes_from_the_clock(self):
        lottery = self.create_lottery()
        self._admit(lottery, 1)
        result = self._engine().draw(lottery.id)
        self.assertEqual(result.lottery.to_json()["completed_at"], T0.isoformat())


if __name__ == "__main__":
    unittest.main()
