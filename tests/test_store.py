import tempfile
import unittest
from pathlib import Path

from sqlalchemy import text

from luckydraw.db.engine import make_engine
from luckydraw.db.store import LotteryStore, verify_schema
from luckydraw.errors import SchemaError
from luckydraw.models import Base, PrizeWarehouse


class LotteryStoreTests(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.database_url = f"sqlite:///{Path(self._tmpdir.name) / 'store.db'}"

    def tearDown(self):
        self._tmpdir.cleanup()

    def _create_schema(self):
        engine = make_engine(self.database_url)
        Base.metadata.create_all(engine)
        engine.dispose()

    def test_open_refuses_unmigrated_database(self):
        store = LotteryStore(self.database_url)
        with self.assertRaises(SchemaError) as ctx:
            store.open()
        self.assertIn("missing table lotteries", str(ctx.exception))
        self.assertFalse(store.is_open)
        store.close()

    def test_verify_schema_reports_missing_columns(self):
        engine = make_engine(self.database_url)
        try:
            Base.metadata.create_all(engine)
            with engine.begin() as conn:
                conn.execute(text("DROP TABLE prize_warehouses"))
                conn.execute(
                    text("CREATE TABLE prize_warehouses (id INTEGER PRIMARY KEY, name TEXT)")
                )
            with self.assertRaises(SchemaError) as ctx:
                verify_schema(engine)
            self.assertIn("prize_warehouses.created_at", str(ctx.exception))
        finally:
            engine.dispose()

    def test_lifecycle_and_transactions(self):
        self._create_schema()
        with LotteryStore(self.database_url) as store:
            self.assertTrue(store.is_open)
            with store.transaction() as session:
                session.add(PrizeWarehouse(name="main"))
            with store.session() as session:
                found = PrizeWarehouse.get_by_name(session, "main")
            self.assertIsNotNone(found)
            assert found is not None
            # attributes stay readable after the session closed
            self.assertEqual(found.name, "main")
        self.assertFalse(store.is_open)
        with self.assertRaises(RuntimeError):
            with store.session():
                pass

    def test_transaction_rolls_back_on_error(self):
        self._create_schema()
        with LotteryStore(self.database_url) as store:
            with self.assertRaises(ValueError):
                with store.transaction() as session:
                    session.add(PrizeWarehouse(name="discarded"))
                    session.flush()
                    raise ValueError("abort")
            with store.session() as session:
                self.assertIsNone(PrizeWarehouse.get_by_name(session, "discarded"))

    def test_sqlite_foreign_keys_enabled(self):
        engine = make_engine(self.database_url)
        try:
            with engine.connect() as conn:
                self.assertEqual(conn.execute(text("PRAGMA foreign_keys")).scalar(), 1)
        finally:
            engine.dispose()


if __name__ == "__main__":
    unittest.main()
