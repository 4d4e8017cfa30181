from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..money import money_str, round_money
from ..time_utils import to_utc_z, utcnow


@dataclass(frozen=True)
class LockedLine:
    """A sale line whose unit price was fixed at validation time."""
    product_id: int
    quantity: int
    price_at_sale: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.price_at_sale


def compute_total_amount(lines) -> Decimal:
    """
    Exact Decimal sum of quantity x price_at_sale, rounded once to cents.

    Lines are never rounded individually.
    """
    return round_money(sum((line.line_total for line in lines), Decimal("0")))


class Sale(db.Model):
    """
    Immutable sale record.

    Created exactly once, inside the sale transaction, by build_sale().
    Nothing in the application updates or deletes a Sale or its items;
    reporting history depends on it.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total_amount >= 0", name="ck_sales_total_non_negative"),
        db.Index("ix_sales_sale_date", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    customer_name = db.Column(db.String(120), nullable=False)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    processed_by = db.relationship("User", foreign_keys=[processed_by_user_id])
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} total={self.total_amount} items={len(self.items)}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_date": to_utc_z(self.sale_date),
            "customer_name": self.customer_name,
            "items": [item.to_dict() for item in self.items],
            "total_amount": money_str(self.total_amount),
            "processed_by_user_id": self.processed_by_user_id,
            "processed_by": self.processed_by.to_ref() if self.processed_by else None,
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """One line of a sale. Duplicate products in a request stay separate lines."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_items_sale_position"),
        db.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint("price_at_sale >= 0", name="ck_sale_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_at_sale = db.Column(db.Numeric(12, 4), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product": self.product.to_ref() if self.product else None,
            "quantity": self.quantity,
            "price_at_sale": money_str(self.price_at_sale),
        }


def build_sale(
    *,
    lines: list[LockedLine],
    customer_name: str,
    processed_by_user_id: int,
    sale_date: datetime | None = None,
) -> Sale:
    """
    Construct a complete Sale with its derived total.

    The total is always computed here from the locked lines; it is never
    accepted from the caller.
    """
    if not lines:
        raise ValueError("A sale must contain at least one item")

    sale = Sale(
        sale_date=sale_date or utcnow(),
        customer_name=customer_name,
        total_amount=compute_total_amount(lines),
        processed_by_user_id=processed_by_user_id,
    )
    sale.items = [
        SaleItem(
            position=index,
            product_id=line.product_id,
            quantity=line.quantity,
            price_at_sale=line.price_at_sale,
        )
        for index, line in enumerate(lines, start=1)
    ]
    return sale
