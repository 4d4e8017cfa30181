"""
Sale transaction tests.

Verifies, at the service layer:
- Atomicity: a failure after lookup leaves no sale and no stock change
- Price-locking: line prices come from the read that validated stock
- Stock never goes negative; quantities are aggregated per product
- Totals are summed exactly and rounded once, half-up
- Concurrency conflicts are retried, other failures are not
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from inventory_platform.extensions import db
from inventory_platform.models import LockedLine, Product, Sale, SaleItem, compute_total_amount
from inventory_platform.services import catalog_store, sale_ledger, sales_service
from inventory_platform.services.concurrency import StockDecrementConflict
from inventory_platform.services.sales_service import (
    ConcurrencyConflictError,
    InsufficientStockError,
    ProductNotFoundError,
    SalePersistenceError,
    SaleValidationError,
)


def _stock(product_id: int) -> int:
    db.session.expire_all()
    return db.session.get(Product, product_id).stock_quantity


def _sale_count() -> int:
    return db.session.query(Sale).count()


# =============================================================================
# HAPPY PATH
# =============================================================================


class TestRecordSale:

    def test_records_sale_and_decrements_stock(self, product_factory, sales_user):
        p1 = product_factory(price=Decimal("4.50"), stock_quantity=10)
        p2 = product_factory(price=Decimal("2.25"), stock_quantity=3)

        sale = sales_service.record_sale(
            [{"product_id": p1.id, "quantity": 2}, {"product_id": p2.id, "quantity": 3}],
            actor_user_id=sales_user.id,
            customer_name="Alice",
        )

        assert sale.id is not None
        assert sale.customer_name == "Alice"
        assert sale.processed_by_user_id == sales_user.id
        assert sale.total_amount == Decimal("15.75")
        assert [(i.product_id, i.quantity) for i in sale.items] == [(p1.id, 2), (p2.id, 3)]
        assert _stock(p1.id) == 8
        assert _stock(p2.id) == 0

    def test_default_customer_name(self, product_factory, sales_user):
        p = product_factory()
        sale = sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)
        assert sale.customer_name == "General Customer"

    def test_blank_customer_name_uses_default(self, product_factory, sales_user):
        p = product_factory()
        sale = sales_service.record_sale(
            [{"product_id": p.id, "quantity": 1}],
            actor_user_id=sales_user.id,
            customer_name="   ",
        )
        assert sale.customer_name == "General Customer"

    def test_accepts_camel_case_product_id(self, product_factory, sales_user):
        p = product_factory()
        sale = sales_service.record_sale([{"productId": p.id, "quantity": 1}], actor_user_id=sales_user.id)
        assert sale.items[0].product_id == p.id

    def test_duplicate_products_stay_separate_lines(self, product_factory, sales_user):
        p = product_factory(stock_quantity=10)
        sale = sales_service.record_sale(
            [{"product_id": p.id, "quantity": 4}, {"product_id": p.id, "quantity": 5}],
            actor_user_id=sales_user.id,
        )
        assert [i.quantity for i in sale.items] == [4, 5]
        assert [i.position for i in sale.items] == [1, 2]
        assert _stock(p.id) == 1

    def test_selling_exact_stock_reaches_zero(self, product_factory, sales_user):
        p = product_factory(stock_quantity=5)
        sales_service.record_sale([{"product_id": p.id, "quantity": 5}], actor_user_id=sales_user.id)
        assert _stock(p.id) == 0

    def test_sale_bumps_product_version(self, product_factory, sales_user):
        p = product_factory()
        before = p.version_id
        sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)
        db.session.expire_all()
        assert db.session.get(Product, p.id).version_id == before + 1


# =============================================================================
# VALIDATION (rejected before any store access)
# =============================================================================


class TestValidation:

    @pytest.mark.parametrize(
        "items",
        [
            None,
            [],
            [{"quantity": 1}],
            [{"product_id": 1}],
            [{"product_id": 1, "quantity": 0}],
            [{"product_id": 1, "quantity": -2}],
            [{"product_id": 1, "quantity": 1.5}],
            [{"product_id": 1, "quantity": True}],
            [{"product_id": "abc", "quantity": 1}],
            ["not-an-object"],
        ],
    )
    def test_malformed_items_rejected(self, db_session, sales_user, items):
        with pytest.raises(SaleValidationError):
            sales_service.record_sale(items, actor_user_id=sales_user.id)
        assert _sale_count() == 0

    def test_missing_actor_rejected(self, product_factory):
        p = product_factory()
        with pytest.raises(SaleValidationError):
            sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=None)
        assert _stock(p.id) == 10


# =============================================================================
# NOT FOUND / INSUFFICIENT STOCK
# =============================================================================


class TestFailuresAbortEverything:

    def test_unknown_product_aborts_whole_sale(self, product_factory, sales_user):
        p = product_factory(stock_quantity=10)
        with pytest.raises(ProductNotFoundError) as exc:
            sales_service.record_sale(
                [{"product_id": p.id, "quantity": 1}, {"product_id": 999999, "quantity": 1}],
                actor_user_id=sales_user.id,
            )
        assert exc.value.product_id == 999999
        assert _stock(p.id) == 10
        assert _sale_count() == 0

    def test_inactive_product_is_not_found(self, product_factory, sales_user):
        p = product_factory(is_active=False)
        with pytest.raises(ProductNotFoundError):
            sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)

    def test_insufficient_stock_leaves_stock_unchanged(self, product_factory, sales_user):
        p = product_factory(name="Widget", stock_quantity=5)
        with pytest.raises(InsufficientStockError) as exc:
            sales_service.record_sale([{"product_id": p.id, "quantity": 6}], actor_user_id=sales_user.id)

        assert exc.value.details == {
            "product_id": p.id,
            "product_name": "Widget",
            "available": 5,
            "requested": 6,
        }
        assert "Widget" in exc.value.message
        assert _stock(p.id) == 5
        assert _sale_count() == 0

    def test_duplicate_lines_are_checked_against_their_sum(self, product_factory, sales_user):
        q = product_factory(stock_quantity=10)
        with pytest.raises(InsufficientStockError) as exc:
            sales_service.record_sale(
                [{"product_id": q.id, "quantity": 6}, {"product_id": q.id, "quantity": 5}],
                actor_user_id=sales_user.id,
            )
        assert exc.value.requested == 11
        assert exc.value.available == 10
        assert _stock(q.id) == 10
        assert _sale_count() == 0

    def test_second_product_short_leaves_first_untouched(self, product_factory, sales_user):
        plenty = product_factory(stock_quantity=50)
        short = product_factory(stock_quantity=1)
        with pytest.raises(InsufficientStockError):
            sales_service.record_sale(
                [{"product_id": plenty.id, "quantity": 3}, {"product_id": short.id, "quantity": 2}],
                actor_user_id=sales_user.id,
            )
        assert _stock(plenty.id) == 50
        assert _stock(short.id) == 1


# =============================================================================
# ATOMICITY AND PRICE-LOCKING
# =============================================================================


class TestAtomicity:

    def test_persistence_failure_rolls_back_decrements(self, product_factory, sales_user, monkeypatch):
        p1 = product_factory(stock_quantity=10)
        p2 = product_factory(stock_quantity=10)

        def boom(sale):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(sale_ledger, "append_sale", boom)

        with pytest.raises(SalePersistenceError) as exc:
            sales_service.record_sale(
                [{"product_id": p1.id, "quantity": 2}, {"product_id": p2.id, "quantity": 3}],
                actor_user_id=sales_user.id,
            )

        assert exc.value.message == "Sale processing failed"
        assert _sale_count() == 0
        assert db.session.query(SaleItem).count() == 0
        assert _stock(p1.id) == 10
        assert _stock(p2.id) == 10

    def test_interrupt_rolls_back(self, product_factory, sales_user, monkeypatch):
        p = product_factory(stock_quantity=10)

        def interrupted(sale):
            raise KeyboardInterrupt()

        monkeypatch.setattr(sale_ledger, "append_sale", interrupted)

        with pytest.raises(KeyboardInterrupt):
            sales_service.record_sale([{"product_id": p.id, "quantity": 4}], actor_user_id=sales_user.id)

        assert _sale_count() == 0
        assert _stock(p.id) == 10

    def test_price_change_before_commit_does_not_affect_sale(self, product_factory, sales_user, monkeypatch):
        p = product_factory(price=Decimal("10.00"), stock_quantity=10)
        original_append = sale_ledger.append_sale

        def reprice_then_append(sale):
            # A price edit lands inside the sale's transaction, after validation
            product = db.session.get(Product, p.id)
            product.price = Decimal("20.00")
            db.session.flush()
            return original_append(sale)

        monkeypatch.setattr(sale_ledger, "append_sale", reprice_then_append)

        sale = sales_service.record_sale([{"product_id": p.id, "quantity": 2}], actor_user_id=sales_user.id)

        assert sale.items[0].price_at_sale == Decimal("10.00")
        assert sale.total_amount == Decimal("20.00")
        db.session.expire_all()
        assert db.session.get(Product, p.id).price == Decimal("20.00")

    def test_later_price_change_does_not_rewrite_history(self, product_factory, sales_user):
        p = product_factory(price=Decimal("10.00"))
        sale = sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)

        p.price = Decimal("99.00")
        db.session.commit()

        db.session.expire_all()
        reloaded = sales_service.get_sale(sale.id)
        assert reloaded.items[0].price_at_sale == Decimal("10.00")
        assert reloaded.total_amount == Decimal("10.00")


# =============================================================================
# TOTALS
# =============================================================================


class TestTotals:

    def test_total_rounds_once_half_up(self, product_factory, sales_user):
        a = product_factory(price=Decimal("9.995"), stock_quantity=10)
        b = product_factory(price=Decimal("5.00"), stock_quantity=10)
        items = [{"product_id": a.id, "quantity": 2}, {"product_id": b.id, "quantity": 1}]

        first = sales_service.record_sale(items, actor_user_id=sales_user.id)
        second = sales_service.record_sale(items, actor_user_id=sales_user.id)

        assert first.total_amount == Decimal("24.99")
        assert second.total_amount == first.total_amount

    def test_half_cent_rounds_up(self):
        assert compute_total_amount([LockedLine(1, 1, Decimal("0.005"))]) == Decimal("0.01")

    def test_lines_are_not_rounded_individually(self):
        # Per-line rounding would give 0.01 + 0.01 = 0.02
        lines = [LockedLine(1, 1, Decimal("0.004")), LockedLine(2, 1, Decimal("0.004"))]
        assert compute_total_amount(lines) == Decimal("0.01")


# =============================================================================
# RETRY POLICY
# =============================================================================


class TestRetry:

    def test_decrement_conflict_is_retried(self, product_factory, sales_user, monkeypatch):
        p = product_factory(stock_quantity=10)
        original = catalog_store.decrement_stock
        calls = {"n": 0}

        def flaky(product_id, quantity):
            calls["n"] += 1
            if calls["n"] == 1:
                raise StockDecrementConflict(product_id, quantity)
            return original(product_id, quantity)

        monkeypatch.setattr(catalog_store, "decrement_stock", flaky)

        sale = sales_service.record_sale([{"product_id": p.id, "quantity": 3}], actor_user_id=sales_user.id)

        assert calls["n"] == 2
        assert sale.id is not None
        assert _stock(p.id) == 7
        assert _sale_count() == 1

    def test_exhausted_retries_surface_conflict(self, app, product_factory, sales_user, monkeypatch):
        p = product_factory(stock_quantity=10)
        calls = {"n": 0}

        def always_conflicts(product_id, quantity):
            calls["n"] += 1
            raise StockDecrementConflict(product_id, quantity)

        monkeypatch.setattr(catalog_store, "decrement_stock", always_conflicts)

        with pytest.raises(ConcurrencyConflictError):
            sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)

        assert calls["n"] == app.config["SALE_RETRY_ATTEMPTS"]
        assert _stock(p.id) == 10
        assert _sale_count() == 0

    def test_database_locked_is_retried(self, product_factory, sales_user, monkeypatch):
        p = product_factory(stock_quantity=10)
        original = sale_ledger.append_sale
        calls = {"n": 0}

        def locked_once(sale):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("INSERT INTO sales", {}, Exception("database is locked"))
            return original(sale)

        monkeypatch.setattr(sale_ledger, "append_sale", locked_once)

        sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)

        assert calls["n"] == 2
        assert _stock(p.id) == 9
        assert _sale_count() == 1

    def test_persistence_failure_is_not_retried(self, product_factory, sales_user, monkeypatch):
        p = product_factory()
        calls = {"n": 0}

        def broken(sale):
            calls["n"] += 1
            raise OperationalError("INSERT INTO sales", {}, Exception("disk I/O error"))

        monkeypatch.setattr(sale_ledger, "append_sale", broken)

        with pytest.raises(SalePersistenceError):
            sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)
        assert calls["n"] == 1


# =============================================================================
# LEDGER
# =============================================================================


class TestLedger:

    def test_append_rejects_existing_sale(self, product_factory, sales_user):
        p = product_factory()
        sale = sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)
        with pytest.raises(ValueError):
            sale_ledger.append_sale(sale)

    def test_list_sales_newest_first(self, product_factory, sales_user):
        p = product_factory(stock_quantity=10)
        first = sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)
        second = sales_service.record_sale([{"product_id": p.id, "quantity": 1}], actor_user_id=sales_user.id)

        result = sales_service.list_sales(page=1, per_page=10)

        assert [s["id"] for s in result["items"]][:2] == [second.id, first.id]
        assert result["pagination"]["total"] == 2
