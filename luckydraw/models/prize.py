"""Database models for prize warehouses and their stock."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base


class PrizeWarehouse(Base):
    """A named, ordered collection of prize items shared by lotteries."""

    __tablename__ = "prize_warehouses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    items: Mapped[list["PrizeItem"]] = relationship(
        back_populates="warehouse",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PrizeItem.order_index, PrizeItem.id",
    )

    __table_args__ = (UniqueConstraint("name", name="uq_prize_warehouses_name"),)

    def __repr__(self) -> str:
        return f"<PrizeWarehouse(id={self.id}, name={self.name!r})>"

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["PrizeWarehouse"]:
        """Fetch a warehouse by its unique name."""

        return session.scalar(select(cls).where(cls.name == name))

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": dt_iso(self.created_at),
        }


class PrizeItem(Base):
    """A prize text with a stock counter.

    Items are consumed lowest ``order_index`` first; only items with
    ``stock > 0`` are eligible.
    """

    __tablename__ = "prize_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key. Also the tie breaker for equal ``order_index`` values."""

    warehouse_id: Mapped[int] = mapped_column(
        ForeignKey("prize_warehouses.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    """Prize content delivered to the winner."""

    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Units left. Never negative."""

    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Consumption order within the warehouse, lowest first."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    warehouse: Mapped["PrizeWarehouse"] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint("warehouse_id", "text", name="uq_prize_item_text"),
        CheckConstraint("stock >= 0", name="stock_non_negative"),
        Index("ix_prize_items_consumption_order", "warehouse_id", "order_index", "id"),
    )

    def __repr__(self) -> str:
        return (
            "<PrizeItem("
            f"id={self.id}, warehouse_id={self.warehouse_id}, stock={self.stock}, "
            f"order_index={self.order_index}"
            ")>"
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "text": self.text,
            "stock": self.stock,
            "order_index": self.order_index,
            "created_at": dt_iso(self.created_at),
        }


__all__ = ["PrizeWarehouse", "PrizeItem"]
