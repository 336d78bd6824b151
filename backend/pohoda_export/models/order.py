"""Order ORM — paid orders and their lines, owned by the course-sales application.

Invariants:
    - Amounts are Numeric(12, 2); total is the final gross, total_price the gross before order discount
    - The export pipeline writes back only invoice_number
    - items load eagerly (selectin) in id order: the last line absorbs discount rounding

Design Decisions:
    - Integer ids: the order id doubles as the invoice variable symbol (digits only)
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pohoda_export.db.base import Base


class Order(Base):
    """Paid order — source of one issued invoice."""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    price_excl_vat: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    vat: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    invoice_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_confirmation: Mapped[str | None] = mapped_column(
        String(128), nullable=True,
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    """One course line of an order."""
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False,
        index=True,
    )
    course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    course_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price_excl_vat: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    vat: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
