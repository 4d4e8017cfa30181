# Overview: Data-access contract for products as seen by the sale transaction.

"""
Catalog Store

Every function here runs inside the caller's unit of work; none of them
commits. The sale coordinator relies on two guarantees:

- fetch_products_for_sale() reads all requested products in one locked read
- decrement_stock() is an atomic conditional update that can never drive
  stock below zero, regardless of what the caller read earlier
"""

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import Product, SaleItem
from .concurrency import StockDecrementConflict, lock_for_update


def fetch_products_for_sale(product_ids: Iterable[int]) -> dict[int, Product]:
    """
    Batch-load active products by id under a row lock.

    Rows are locked in id order so two sales touching the same products
    cannot deadlock each other. Missing or inactive ids are simply absent
    from the result.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    query = (
        db.session.query(Product)
        .filter(Product.id.in_(ids), Product.is_active.is_(True))
        .order_by(Product.id.asc())
    )
    return {p.id: p for p in lock_for_update(query).all()}


def decrement_stock(product_id: int, quantity: int) -> None:
    """
    UPDATE products SET stock_quantity = stock_quantity - :q
    WHERE id = :id AND stock_quantity >= :q

    Bumps version_id so concurrent ORM edits of the same product fail their
    optimistic check. Raises StockDecrementConflict when no row matched.
    """
    if quantity < 1:
        raise ValueError("quantity must be positive")

    matched = (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.stock_quantity >= quantity)
        .update(
            {
                Product.stock_quantity: Product.stock_quantity - quantity,
                Product.version_id: Product.version_id + 1,
            },
            synchronize_session="evaluate",
        )
    )
    if matched != 1:
        raise StockDecrementConflict(product_id, quantity)


def count_sale_references(product_id: int) -> int:
    """Number of sale lines that point at the product."""
    return db.session.query(SaleItem).filter_by(product_id=product_id).count()
