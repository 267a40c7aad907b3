"""Prize inventory: named warehouses of stock-bounded prize items."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from ..db.store import LotteryStore
from ..errors import NotFoundError, WarehouseExistsError
from ..models import PrizeItem, PrizeWarehouse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WarehouseSummary:
    name: str
    prize_count: int
    """Number of distinct prizes with stock left."""
    total_stock: int


class PrizeInventory:
    """Manages warehouses and hands out prize units one at a time.

    Stock is only ever decremented through :meth:`consume`, a single
    conditional ``UPDATE`` that succeeds only while ``stock > 0``, so
    concurrent callers can never drive an item negative or receive the same
    unit twice. Items are independent rows; nothing here locks a warehouse.
    """

    def __init__(self, store: LotteryStore) -> None:
        self._store = store

    # -------- warehouses --------
    def create_warehouse(self, name: str) -> PrizeWarehouse:
        name = (name or "").strip()
        if not name:
            raise ValueError("Warehouse name must not be empty")
        try:
            with self._store.transaction() as session:
                if PrizeWarehouse.get_by_name(session, name) is not None:
                    raise WarehouseExistsError(f"Warehouse {name!r} already exists")
                warehouse = PrizeWarehouse(name=name)
                session.add(warehouse)
                session.flush()
        except IntegrityError:
            raise WarehouseExistsError(f"Warehouse {name!r} already exists") from None
        logger.debug(f"Created prize warehouse {name!r}")
        return warehouse

    def get_warehouse(self, name: str) -> PrizeWarehouse:
        with self._store.session() as session:
            warehouse = PrizeWarehouse.get_by_name(session, name)
        if warehouse is None:
            raise NotFoundError(f"Warehouse {name!r} does not exist")
        return warehouse

    def warehouse_names(self) -> list[str]:
        with self._store.session() as session:
            return list(
                session.scalars(select(PrizeWarehouse.name).order_by(PrizeWarehouse.name))
            )

    def list_warehouses(self, *, in_stock_only: bool = False) -> list[WarehouseSummary]:
        """Summarise every warehouse ordered by name."""
        in_stock = PrizeItem.stock > 0
        stmt = (
            select(
                PrizeWarehouse.name,
                func.count(PrizeItem.id).filter(in_stock),
                func.coalesce(func.sum(PrizeItem.stock), 0),
            )
            .outerjoin(PrizeItem, PrizeItem.warehouse_id == PrizeWarehouse.id)
            .group_by(PrizeWarehouse.id, PrizeWarehouse.name)
            .order_by(PrizeWarehouse.name)
        )
        with self._store.session() as session:
            rows = session.execute(stmt).all()
        summaries = [
            WarehouseSummary(name=name, prize_count=int(count), total_stock=int(total))
            for name, count, total in rows
        ]
        if in_stock_only:
            summaries = [s for s in summaries if s.total_stock > 0]
        return summaries

    def resolve_warehouse(self, identifier: str) -> str:
        """Resolve a warehouse name or a 1-based index into the name ordered list."""
        identifier = str(identifier).strip()
        names = self.warehouse_names()
        if identifier.isdigit():
            index = int(identifier)
            if 1 <= index <= len(names):
                return names[index - 1]
        if identifier in names:
            return identifier
        raise NotFoundError(f"Warehouse {identifier!r} does not exist")

    def clear_warehouse(self, name: str) -> int:
        """Delete a warehouse and its items. Returns the number of items removed."""
        with self._store.transaction() as session:
            warehouse = PrizeWarehouse.get_by_name(session, name)
            if warehouse is None:
                return 0
            removed = session.execute(
                delete(PrizeItem).where(PrizeItem.warehouse_id == warehouse.id)
            ).rowcount
            session.execute(delete(PrizeWarehouse).where(PrizeWarehouse.id == warehouse.id))
        logger.info(f"Cleared warehouse {name!r} ({removed} items)")
        return removed

    def clear_all(self) -> int:
        with self._store.transaction() as session:
            removed = session.execute(delete(PrizeItem)).rowcount
            session.execute(delete(PrizeWarehouse))
        logger.info(f"Cleared all warehouses ({removed} items)")
        return removed

    # -------- items --------
    def add_prize(self, warehouse: str, text: str, stock: int = 1) -> PrizeItem:
        """Add ``stock`` units of ``text`` to ``warehouse``.

        A prize text already present in the warehouse is restocked instead of
        being added twice. New prizes go to the end of the consumption order.
        """
        text = (text or "").strip()
        if not text:
            raise ValueError("Prize text must not be empty")
        if stock <= 0:
            raise ValueError("Prize stock must be a positive integer")

        try:
            return self._add_or_restock(warehouse, text, stock)
        except IntegrityError:
            # A concurrent insert of the same text won; restock its row.
            logger.debug(f"Prize {text!r} inserted concurrently in {warehouse!r}")
            return self._add_or_restock(warehouse, text, stock)

    def _add_or_restock(self, warehouse: str, text: str, stock: int) -> PrizeItem:
        with self._store.transaction() as session:
            wh = PrizeWarehouse.get_by_name(session, warehouse)
            if wh is None:
                raise NotFoundError(f"Warehouse {warehouse!r} does not exist")
            item = session.scalar(
                select(PrizeItem).where(
                    PrizeItem.warehouse_id == wh.id, PrizeItem.text == text
                )
            )
            if item is not None:
                session.execute(
                    update(PrizeItem)
                    .where(PrizeItem.id == item.id)
                    .values(stock=PrizeItem.stock + stock)
                    .execution_options(synchronize_session=False)
                )
                session.refresh(item)
                return item
            next_order = session.scalar(
                select(func.coalesce(func.max(PrizeItem.order_index), 0) + 1).where(
                    PrizeItem.warehouse_id == wh.id
                )
            )
            item = PrizeItem(
                warehouse_id=wh.id, text=text, stock=stock, order_index=next_order
            )
            session.add(item)
            session.flush()
            return item

    def list_prizes(self, warehouse: str) -> list[PrizeItem]:
        """Items with stock left, in consumption order."""
        stmt = (
            select(PrizeItem)
            .join(PrizeWarehouse, PrizeItem.warehouse_id == PrizeWarehouse.id)
            .where(PrizeWarehouse.name == warehouse, PrizeItem.stock > 0)
            .order_by(PrizeItem.order_index, PrizeItem.id)
        )
        with self._store.session() as session:
            return list(session.scalars(stmt))

    def get_item(self, item_id: int) -> PrizeItem:
        with self._store.session() as session:
            item = session.get(PrizeItem, item_id)
        if item is None:
            raise NotFoundError(f"Prize item {item_id} does not exist")
        return item

    def next_available(self, warehouse: str) -> Optional[PrizeItem]:
        """Return the first item in consumption order that still has stock."""
        stmt = (
            select(PrizeItem)
            .join(PrizeWarehouse, PrizeItem.warehouse_id == PrizeWarehouse.id)
            .where(PrizeWarehouse.name == warehouse, PrizeItem.stock > 0)
            .order_by(PrizeItem.order_index, PrizeItem.id)
            .limit(1)
        )
        with self._store.session() as session:
            return session.scalar(stmt)

    def consume(self, item_id: int) -> bool:
        """Take one unit of ``item_id``.

        Returns
        -------
        bool
            ``True`` when a unit was taken, ``False`` when the item is out of
            stock.

        Raises
        ------
        NotFoundError
            If the item does not exist.
        """
        with self._store.transaction() as session:
            result = session.execute(
                update(PrizeItem)
                .where(PrizeItem.id == item_id, PrizeItem.stock > 0)
                .values(stock=PrizeItem.stock - 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return True
            if session.get(PrizeItem, item_id) is None:
                raise NotFoundError(f"Prize item {item_id} does not exist")
            return False

    def allocate(self, warehouse: str) -> Optional[PrizeItem]:
        """Consume one unit from the first item in ``warehouse`` that has stock.

        A unit lost to a concurrent caller moves on to the next item. Returns
        ``None`` when the warehouse is exhausted (or does not exist).
        """
        while True:
            item = self.next_available(warehouse)
            if item is None:
                return None
            try:
                taken = self.consume(item.id)
            except NotFoundError:
                # cleared between the lookup and the update
                continue
            if taken:
                item.stock -= 1
                return item
            logger.debug(f"Prize item {item.id} ran out during allocation; retrying")

    def restock(self, item_id: int, amount: int = 1) -> None:
        """Return ``amount`` units to ``item_id``."""
        if amount <= 0:
            raise ValueError("Restock amount must be a positive integer")
        with self._store.transaction() as session:
            result = session.execute(
                update(PrizeItem)
                .where(PrizeItem.id == item_id)
                .values(stock=PrizeItem.stock + amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFoundError(f"Prize item {item_id} does not exist")


__all__ = ["PrizeInventory", "WarehouseSummary"]
