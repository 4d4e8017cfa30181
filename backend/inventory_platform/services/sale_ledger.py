# Overview: Append-only store of committed sales.

"""
Sale Ledger Invariants

- Append-only: append_sale() is the only write; there is no update or delete.
- Appends happen inside the same unit of work as the stock decrements they
  account for, so a sale exists if and only if its stock was taken.
"""

from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Sale, SaleItem
from ..validation import MAX_DB_INTEGER


def append_sale(sale: Sale) -> Sale:
    """Stage a new sale in the current unit of work and assign its id."""
    if sale.id is not None:
        raise ValueError("Sale records are immutable once written")
    db.session.add(sale)
    db.session.flush()
    return sale


def get_sale(sale_id: int) -> Sale | None:
    return (
        db.session.query(Sale)
        .options(
            selectinload(Sale.items).selectinload(SaleItem.product),
            selectinload(Sale.processed_by),
        )
        .filter(Sale.id == sale_id)
        .first()
    )


def list_sales(page: int = 1, per_page: int = 10) -> dict:
    """Newest first, paginated."""
    per_page = min(max(per_page or 10, 1), 100)
    page = min(max(page or 1, 1), MAX_DB_INTEGER // per_page)

    base_query = db.session.query(Sale).order_by(Sale.sale_date.desc(), Sale.id.desc())
    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    sales = (
        base_query.options(
            selectinload(Sale.items).selectinload(SaleItem.product),
            selectinload(Sale.processed_by),
        )
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return {
        "items": [s.to_dict() for s in sales],
        "count": len(sales),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
