"""
Sales Service - atomic sale recording

record_sale() is the only way stock leaves the catalog. In one unit of work
it:

1. reads every requested product once, under a write lock
2. checks availability against the SUM of requested quantities per product
3. locks each line's price to the catalog price read in step 1
4. decrements stock with a conditional update per distinct product
5. appends the immutable Sale with a server-computed total

Either all of it commits or none of it does. Concurrency conflicts are
retried a bounded number of times; everything else fails on first sight.
"""

from __future__ import annotations

from collections import OrderedDict

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..models import LockedLine, Sale, build_sale
from ..validation import SaleRequestItem, ValidationError, validate_sale_request
from . import catalog_store, sale_ledger
from .concurrency import (
    StockDecrementConflict,
    begin_write_transaction,
    is_concurrency_conflict,
    run_with_retry,
    unit_of_work,
)


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SaleValidationError(SaleError):
    """Malformed request; rejected before any store access."""


class ProductNotFoundError(SaleError):
    def __init__(self, product_id: int):
        super().__init__(
            f"Product with ID {product_id} not found",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class InsufficientStockError(SaleError):
    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_name}. "
            f"Available: {available}, requested: {requested}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class ConcurrencyConflictError(SaleError):
    """Competing writers kept winning; the caller may try again later."""
    def __init__(self):
        super().__init__("Sale could not be completed due to concurrent updates, please retry")


class SalePersistenceError(SaleError):
    def __init__(self):
        super().__init__("Sale processing failed")


def _requested_totals(items: list[SaleRequestItem]) -> "OrderedDict[int, int]":
    """Sum requested quantity per distinct product, in first-seen order."""
    totals: OrderedDict[int, int] = OrderedDict()
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def _record_sale_once(items: list[SaleRequestItem], customer_name: str, actor_user_id: int) -> Sale:
    with unit_of_work():
        begin_write_transaction()

        totals = _requested_totals(items)
        products = catalog_store.fetch_products_for_sale(totals.keys())

        for product_id in totals:
            if product_id not in products:
                raise ProductNotFoundError(product_id)

        # Validate every product before touching any of them
        for product_id, requested in totals.items():
            product = products[product_id]
            if requested > product.stock_quantity:
                raise InsufficientStockError(
                    product_id=product_id,
                    product_name=product.name,
                    available=product.stock_quantity,
                    requested=requested,
                )

        # Price-lock from the same read the stock check used
        lines = [
            LockedLine(
                product_id=item.product_id,
                quantity=item.quantity,
                price_at_sale=products[item.product_id].price,
            )
            for item in items
        ]

        for product_id in sorted(totals):
            catalog_store.decrement_stock(product_id, totals[product_id])

        sale = build_sale(
            lines=lines,
            customer_name=customer_name,
            processed_by_user_id=actor_user_id,
        )
        sale_ledger.append_sale(sale)

    return sale


def record_sale(items, actor_user_id: int, customer_name: str | None = None) -> Sale:
    """
    Record a sale and decrement stock atomically.

    `items` is the raw request list ({"product_id"|"productId", "quantity"}).
    The caller has already authenticated and authorized `actor_user_id`.

    Raises SaleValidationError, ProductNotFoundError, InsufficientStockError,
    ConcurrencyConflictError or SalePersistenceError. Whatever is raised, no
    stock has changed and no sale exists.
    """
    try:
        items, customer_name = validate_sale_request({"items": items, "customer_name": customer_name})
    except ValidationError as exc:
        raise SaleValidationError(str(exc)) from exc
    if not actor_user_id:
        raise SaleValidationError("processed_by user is required")

    customer = customer_name or current_app.config.get("DEFAULT_CUSTOMER_NAME", "General Customer")

    def _op():
        return _record_sale_once(items, customer, actor_user_id)

    try:
        sale = run_with_retry(
            _op,
            attempts=current_app.config.get("SALE_RETRY_ATTEMPTS", 3),
            backoff_base=current_app.config.get("SALE_RETRY_BACKOFF_SECONDS", 0.1),
        )
    except SaleError:
        raise
    except (SQLAlchemyError, StockDecrementConflict) as exc:
        if is_concurrency_conflict(exc):
            current_app.logger.warning("Sale abandoned after repeated concurrency conflicts")
            raise ConcurrencyConflictError() from exc
        current_app.logger.exception("Sale transaction failed to persist")
        raise SalePersistenceError() from exc

    current_app.logger.info(
        "Recorded sale %s: %d item(s), total %s, processed by user %s",
        sale.id, len(items), sale.total_amount, actor_user_id,
    )
    return sale


def get_sale(sale_id: int) -> Sale | None:
    return sale_ledger.get_sale(sale_id)


def list_sales(page: int = 1, per_page: int = 10) -> dict:
    return sale_ledger.list_sales(page=page, per_page=per_page)
