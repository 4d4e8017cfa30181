# Overview: Service-layer operations for reporting; read-only aggregations over products and sales.

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..money import money_str, round_money
from ..time_utils import end_of_day, is_date_only, parse_iso_datetime, to_utc_z, utcnow

# group_by -> (sqlite strftime format, to_char format for other dialects)
PERIOD_FORMATS = {
    "day": ("%Y-%m-%d", "YYYY-MM-DD"),
    "week": ("%Y-W%W", 'IYYY-"W"IW'),
    "month": ("%Y-%m", "YYYY-MM"),
}


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_date(name: str, value: str | None) -> datetime | None:
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ReportError(f"{name} must be an ISO-8601 date or datetime")


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    start_dt = _parse_date("start_date", start)
    end_dt = _parse_date("end_date", end)
    # A bare end date covers that whole day
    if end_dt is not None and is_date_only(end):
        end_dt = end_of_day(end_dt)
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start_date must not be after end_date")
    return start_dt, end_dt


def _period_expr(group_by: str):
    if group_by not in PERIOD_FORMATS:
        raise ReportError("group_by must be day, week, or month")
    sqlite_fmt, pg_fmt = PERIOD_FORMATS[group_by]
    if db.engine.dialect.name == "sqlite":
        return func.strftime(sqlite_fmt, Sale.sale_date)
    return func.to_char(Sale.sale_date, pg_fmt)


def low_stock_report() -> dict:
    """Active products whose stock is below their minimum level, lowest stock first."""
    products = (
        db.session.query(Product)
        .options(joinedload(Product.supplier))
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity < Product.min_stock_level,
        )
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )

    rows = [
        {
            "id": p.id,
            "sku": p.sku,
            "name": p.name,
            "price": money_str(p.price),
            "stock_quantity": p.stock_quantity,
            "min_stock_level": p.min_stock_level,
            "shortfall": p.min_stock_level - p.stock_quantity,
            "supplier": {
                "id": p.supplier.id,
                "name": p.supplier.name,
                "phone": p.supplier.phone,
            } if p.supplier else None,
        }
        for p in products
    ]

    return {
        "report_date": to_utc_z(utcnow()),
        "products": rows,
        "count": len(rows),
    }


def sales_summary(*, start: str | None, end: str | None) -> dict:
    """
    Sale lines in [start, end] grouped by product, highest revenue first.

    Revenue is summed exactly and rounded once per product.
    """
    if not start or not end:
        raise ReportError("start_date and end_date are required")
    start_dt, end_dt = _parse_range(start, end)

    lines = (
        db.session.query(SaleItem)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .options(joinedload(SaleItem.product))
        .filter(Sale.sale_date >= start_dt, Sale.sale_date <= end_dt)
        .all()
    )

    by_product: "OrderedDict[int, dict]" = OrderedDict()
    for line in lines:
        entry = by_product.get(line.product_id)
        if entry is None:
            entry = {
                "product_id": line.product_id,
                "name": line.product.name if line.product else None,
                "sku": line.product.sku if line.product else None,
                "total_quantity_sold": 0,
                "total_revenue": Decimal("0"),
                "count_sales": 0,
            }
            by_product[line.product_id] = entry
        entry["total_quantity_sold"] += line.quantity
        entry["total_revenue"] += line.quantity * Decimal(line.price_at_sale)
        entry["count_sales"] += 1

    summary = []
    for entry in by_product.values():
        entry["total_revenue"] = round_money(entry["total_revenue"])
        summary.append(entry)
    summary.sort(key=lambda e: (-e["total_revenue"], e["product_id"]))
    for entry in summary:
        entry["total_revenue"] = money_str(entry["total_revenue"])

    return {
        "start_date": to_utc_z(start_dt),
        "end_date": to_utc_z(end_dt),
        "summary": summary,
        "total_items": len(summary),
    }


def sales_by_period(*, group_by: str = "day", start: str | None = None, end: str | None = None) -> dict:
    """Sales count, units sold and gross sales per day, week or month."""
    period_expr = _period_expr(group_by)
    start_dt, end_dt = _parse_range(start, end)

    def _in_range(query):
        if start_dt:
            query = query.filter(Sale.sale_date >= start_dt)
        if end_dt:
            query = query.filter(Sale.sale_date <= end_dt)
        return query

    # Totals are summed as Decimals here; SQL SUM over NUMERIC is a float on SQLite
    sale_rows = _in_range(
        db.session.query(period_expr.label("period"), Sale.id, Sale.total_amount)
    ).all()

    items_rows = _in_range(
        db.session.query(
            period_expr.label("period"),
            func.coalesce(func.sum(SaleItem.quantity), 0).label("items_sold"),
        ).join(SaleItem, SaleItem.sale_id == Sale.id)
    ).group_by("period").all()
    items_by_period = {row.period: int(row.items_sold or 0) for row in items_rows}

    periods: dict[str, dict] = {}
    for row in sale_rows:
        bucket = periods.setdefault(row.period, {"sales_count": 0, "gross_sales": Decimal("0")})
        bucket["sales_count"] += 1
        bucket["gross_sales"] += Decimal(row.total_amount)

    return {
        "group_by": group_by,
        "start_date": to_utc_z(start_dt) if start_dt else None,
        "end_date": to_utc_z(end_dt) if end_dt else None,
        "rows": [
            {
                "period": period,
                "sales_count": periods[period]["sales_count"],
                "items_sold": items_by_period.get(period, 0),
                "gross_sales": money_str(round_money(periods[period]["gross_sales"])),
            }
            for period in sorted(periods)
        ],
    }
