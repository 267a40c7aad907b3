import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from helpers import StoreTestCase
from luckydraw.draw import PrizeInventory, WarehouseSummary
from luckydraw.errors import NotFoundError, WarehouseExistsError


class PrizeInventoryTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.inventory = PrizeInventory(self.store)
        self.inventory.create_warehouse("main")

    def test_create_warehouse_rejects_duplicates(self):
        with self.assertRaises(WarehouseExistsError):
            self.inventory.create_warehouse("main")
        with self.assertRaises(ValueError):
            self.inventory.create_warehouse("  ")

    def test_add_prize_appends_in_consumption_order(self):
        first = self.inventory.add_prize("main", "Mug", 1)
        second = self.inventory.add_prize("main", "T-shirt", 2)
        self.assertEqual((first.order_index, second.order_index), (1, 2))
        self.assertEqual(
            [p.text for p in self.inventory.list_prizes("main")], ["Mug", "T-shirt"]
        )

    def test_add_existing_text_restocks(self):
        item = self.inventory.add_prize("main", "Mug", 1)
        again = self.inventory.add_prize("main", "Mug", 4)
        self.assertEqual(again.id, item.id)
        self.assertEqual(again.stock, 5)
        self.assertEqual(len(self.inventory.list_prizes("main")), 1)

    def test_add_prize_validation(self):
        with self.assertRaises(NotFoundError):
            self.inventory.add_prize("missing", "Mug", 1)
        with self.assertRaises(ValueError):
            self.inventory.add_prize("main", "Mug", 0)
        with self.assertRaises(ValueError):
            self.inventory.add_prize("main", "", 1)

    def test_add_prize_restocks_row_inserted_concurrently(self):
        add = self.inventory._add_or_restock
        calls = []

        def competing_insert(warehouse, text, stock):
            calls.append(stock)
            if len(calls) == 1:
                add(warehouse, text, 3)
                raise IntegrityError("INSERT INTO prize_items", {}, Exception("UNIQUE"))
            return add(warehouse, text, stock)

        with patch.object(self.inventory, "_add_or_restock", side_effect=competing_insert):
            item = self.inventory.add_prize("main", "Mug", 2)
        self.assertEqual(calls, [2, 2])
        self.assertEqual(item.stock, 5)

    def test_add_prize_second_conflict_propagates(self):
        error = IntegrityError("INSERT INTO prize_items", {}, Exception("UNIQUE"))
        with patch.object(
            self.inventory, "_add_or_restock", side_effect=[error, error]
        ) as attempt:
            with self.assertRaises(IntegrityError):
                self.inventory.add_prize("main", "Mug", 1)
        self.assertEqual(attempt.call_count, 2)

    def test_allocate_takes_lowest_order_index_first(self):
        mug = self.inventory.add_prize("main", "Mug", 1)
        shirt = self.inventory.add_prize("main", "T-shirt", 1)

        self.assertEqual(self.inventory.allocate("main").id, mug.id)
        self.assertEqual(self.inventory.allocate("main").id, shirt.id)
        self.assertIsNone(self.inventory.allocate("main"))
        self.assertEqual(self.inventory.list_prizes("main"), [])

    def test_allocate_from_missing_warehouse_returns_none(self):
        self.assertIsNone(self.inventory.allocate("nowhere"))

    def test_consume_reports_out_of_stock(self):
        item = self.inventory.add_prize("main", "Mug", 1)
        self.assertTrue(self.inventory.consume(item.id))
        self.assertFalse(self.inventory.consume(item.id))
        self.assertEqual(self.inventory.get_item(item.id).stock, 0)
        with self.assertRaises(NotFoundError):
            self.inventory.consume(item.id + 100)

    def test_restock_returns_units(self):
        item = self.inventory.add_prize("main", "Mug", 1)
        self.inventory.consume(item.id)
        self.inventory.restock(item.id)
        self.assertEqual(self.inventory.get_item(item.id).stock, 1)
        self.assertEqual(self.inventory.next_available("main").id, item.id)
        with self.assertRaises(NotFoundError):
            self.inventory.restock(item.id + 100)
        with self.assertRaises(ValueError):
            self.inventory.restock(item.id, 0)

    def test_concurrent_consume_never_goes_negative(self):
        item = self.inventory.add_prize("main", "Mug", 5)
        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(lambda _: self.inventory.consume(item.id), range(25)))
        self.assertEqual(results.count(True), 5)
        self.assertEqual(self.inventory.get_item(item.id).stock, 0)

    def test_concurrent_allocate_hands_out_each_unit_once(self):
        self.inventory.add_prize("main", "Mug", 3)
        self.inventory.add_prize("main", "T-shirt", 2)
        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(lambda _: self.inventory.allocate("main"), range(12)))
        won = [item.text for item in results if item is not None]
        self.assertEqual(sorted(won), ["Mug"] * 3 + ["T-shirt"] * 2)
        self.assertEqual(self.inventory.list_prizes("main"), [])

    def test_list_warehouses_and_resolve(self):
        self.inventory.create_warehouse("archive")
        self.inventory.add_prize("main", "Mug", 2)
        self.inventory.add_prize("main", "Pen", 3)
        empty = self.inventory.add_prize("main", "Sticker", 1)
        self.inventory.consume(empty.id)

        self.assertEqual(
            self.inventory.list_warehouses(),
            [
                WarehouseSummary(name="archive", prize_count=0, total_stock=0),
                WarehouseSummary(name="main", prize_count=2, total_stock=5),
            ],
        )
        self.assertEqual(
            [s.name for s in self.inventory.list_warehouses(in_stock_only=True)], ["main"]
        )
        self.assertEqual(self.inventory.resolve_warehouse("1"), "archive")
        self.assertEqual(self.inventory.resolve_warehouse("main"), "main")
        with self.assertRaises(NotFoundError):
            self.inventory.resolve_warehouse("3")

    def test_clear_warehouse_and_clear_all(self):
        self.inventory.create_warehouse("other")
        self.inventory.add_prize("main", "Mug", 1)
        self.inventory.add_prize("main", "Pen", 1)
        self.inventory.add_prize("other", "Cap", 1)

        self.assertEqual(self.inventory.clear_warehouse("main"), 2)
        self.assertEqual(self.inventory.clear_warehouse("main"), 0)
        self.assertEqual(self.inventory.warehouse_names(), ["other"])
        self.assertEqual(self.inventory.clear_all(), 1)
        self.assertEqual(self.inventory.list_warehouses(), [])


if __name__ == "__main__":
    unittest.main()
