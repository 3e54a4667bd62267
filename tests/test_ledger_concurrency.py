"""Tests for the transaction coordinator and concurrent ledger writes."""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from shopbooks.database import Base
from shopbooks.models.debt import Debt, DebtPayment, DebtSourceKind
from shopbooks.models.product import Product
from shopbooks.models.sale import Sale
from shopbooks.schemas.sale import SaleCreate
from shopbooks.services.exceptions import (
    ConflictError,
    InsufficientStockError,
    OverPaymentError,
    PersistenceError,
    ProductNotFoundError,
)
from shopbooks.services.debt_service import DebtService
from shopbooks.services.sale_service import SaleService
from shopbooks.services.stock_ledger import StockLedger
from shopbooks.services.transaction import TransactionCoordinator


@pytest.fixture
def file_sessions(tmp_path):
    """Session factory on a file database so connections really run in parallel."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def enforce_foreign_keys(dbapi_connection, connection_record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def add_product(session, stock=5):
    product = Product(
        shop_id="shop-1",
        name="Soda 500ml",
        category="Drinks",
        cost_price=Decimal("600"),
        selling_price=Decimal("1000"),
        stock=stock,
        min_stock_alert=1,
    )
    session.add(product)
    session.commit()
    return product.id


def add_custom_debt(session, total):
    now = datetime.now(timezone.utc)
    debt = Debt(
        shop_id="shop-1",
        debtor_name="Mama Asha",
        source_kind=DebtSourceKind.CUSTOM,
        product_name="Cash loan",
        quantity=1,
        total_amount=Decimal(total),
        amount_owed=Decimal(total),
        borrow_date=now,
        due_date=now,
        is_paid=False,
    )
    session.add(debt)
    session.commit()
    return debt.id


def test_run_atomic_retries_on_stale_write(db_session):
    calls = []

    def operation():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("row version changed")
        return "committed"

    coordinator = TransactionCoordinator(db_session, max_attempts=3, backoff=0)

    assert coordinator.run_atomic(operation) == "committed"
    assert len(calls) == 2


def test_run_atomic_gives_up_with_conflict(db_session):
    calls = []

    def operation():
        calls.append(1)
        raise StaleDataError("row version changed")

    coordinator = TransactionCoordinator(db_session, max_attempts=3, backoff=0)

    with pytest.raises(ConflictError) as exc_info:
        coordinator.run_atomic(operation, name="Sale of product #1")

    assert len(calls) == 3
    assert exc_info.value.attempts == 3


def test_run_atomic_does_not_retry_domain_errors(db_session):
    calls = []

    def operation():
        calls.append(1)
        raise ProductNotFoundError(42)

    coordinator = TransactionCoordinator(db_session, backoff=0)

    with pytest.raises(ProductNotFoundError):
        coordinator.run_atomic(operation)

    assert len(calls) == 1


def test_run_atomic_wraps_rejected_writes(db_session):
    def operation():
        raise IntegrityError("INSERT INTO sales", {}, Exception("constraint failed"))

    coordinator = TransactionCoordinator(db_session, backoff=0)

    with pytest.raises(PersistenceError):
        coordinator.run_atomic(operation)


def test_run_atomic_rolls_back_failed_unit(db_session):
    """Nothing written by a failing unit survives."""
    product_id = add_product(db_session, stock=5)
    ledger = StockLedger(db_session)

    def operation():
        ledger.apply_stock_delta(product_id, -2)
        raise InsufficientStockError(product_id, 3, 10)

    with pytest.raises(InsufficientStockError):
        TransactionCoordinator(db_session, backoff=0).run_atomic(operation)

    assert db_session.get(Product, product_id).stock == 5


def test_stale_stock_write_is_detected(file_sessions):
    """A write based on an outdated stock read never lands."""
    setup = file_sessions()
    product_id = add_product(setup, stock=5)
    setup.close()

    first, second = file_sessions(), file_sessions()
    stale = first.get(Product, product_id)
    fresh = second.get(Product, product_id)

    fresh.stock = 1
    second.commit()

    stale.stock = 4
    with pytest.raises(StaleDataError):
        first.commit()

    first.rollback()
    assert first.get(Product, product_id).stock == 1
    first.close()
    second.close()


def test_concurrent_sales_cannot_oversell(file_sessions):
    """Two terminals selling 4 of 5 units: exactly one wins."""
    setup = file_sessions()
    product_id = add_product(setup, stock=5)
    setup.close()

    def sell():
        session = file_sessions()
        try:
            SaleService(session).record_sale(
                SaleCreate(shop_id="shop-1", product_id=product_id, quantity=4)
            )
            return "sold"
        except InsufficientStockError:
            return "insufficient"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = sorted(pool.map(lambda _: sell(), range(2)))

    assert outcomes == ["insufficient", "sold"]

    check = file_sessions()
    assert check.get(Product, product_id).stock == 1
    assert check.query(Sale).count() == 1
    check.close()


def test_concurrent_payments_cannot_overpay(file_sessions):
    """Two payments of 600 against a 1000 debt: exactly one lands."""
    setup = file_sessions()
    debt_id = add_custom_debt(setup, "1000")
    setup.close()

    def pay():
        session = file_sessions()
        try:
            DebtService(session).pay_debt(debt_id, Decimal("600"))
            return "paid"
        except OverPaymentError:
            return "over"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = sorted(pool.map(lambda _: pay(), range(2)))

    assert outcomes == ["over", "paid"]

    check = file_sessions()
    assert check.get(Debt, debt_id).amount_owed == Decimal("400")
    assert check.query(DebtPayment).count() == 1
    assert check.query(Sale).count() == 1
    check.close()


def test_payment_sales_stay_flagged_after_debt_delete(file_sessions):
    """Booked payment cash keeps pointing at its debt with foreign keys enforced."""
    session = file_sessions()
    debt_id = add_custom_debt(session, "1000")
    service = DebtService(session)

    service.pay_debt(debt_id, Decimal("400"))
    assert service.delete_debt(debt_id) is True

    session.expire_all()
    sale = session.query(Sale).one()
    assert sale.debt_id == debt_id
    assert sale.is_debt_payment is True
    assert session.query(DebtPayment).count() == 0
    session.close()


def test_float_payments_settle_to_the_cent(file_sessions):
    """Float amounts from Python callers are booked as exact cents."""
    session = file_sessions()
    debt_id = add_custom_debt(session, "0.30")
    service = DebtService(session)

    for _ in range(3):
        debt = service.pay_debt(debt_id, 0.1)

    assert debt.is_paid is True
    assert debt.amount_owed == 0
    assert [p.amount for p in debt.payments] == [Decimal("0.10")] * 3
    assert sum(s.total_amount for s in session.query(Sale)) == Decimal("0.30")
    session.close()
