import logging

from kombu.exceptions import OperationalError as KombuOperationalError
from sqlalchemy.exc import SQLAlchemyError

from shopbooks.tasks.celery_app import celery_app
from shopbooks.database import SessionLocal
from shopbooks.models.debt import Debt
from shopbooks.models.product import Product

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="check_stock_level", max_retries=3)
def check_stock_level(self, product_id: int) -> dict:
    """
    Warn when a product has dropped to or below its stock alert threshold.

    Dispatched after a sale or an inventory-backed loan has committed. The
    task only reads; it never touches the ledger.

    Args:
        product_id: Product whose stock just went down

    Returns:
        Dictionary describing the stock level
    """
    db = SessionLocal()

    try:
        product = db.query(Product).filter(Product.id == product_id).first()

        if not product:
            logger.info(f"Product #{product_id} no longer exists, skipping stock check")
            return {"status": "skipped", "product_id": product_id}

        if product.is_low_stock:
            logger.warning(
                f"Low stock: product #{product.id} '{product.name}' in shop {product.shop_id} "
                f"has {product.stock} left (alert at {product.min_stock_alert})"
            )

        return {
            "status": "low" if product.is_low_stock else "ok",
            "product_id": product.id,
            "stock": product.stock,
            "min_stock_alert": product.min_stock_alert,
        }

    except SQLAlchemyError as e:
        logger.error(f"Stock check for product #{product_id} failed: {e}")
        raise self.retry(exc=e, countdown=30)

    finally:
        db.close()


@celery_app.task(bind=True, name="notify_debt_settled", max_retries=3)
def notify_debt_settled(self, debt_id: int) -> dict:
    """
    Announce that a debt has been fully repaid.

    Args:
        debt_id: Debt that reached a zero balance

    Returns:
        Notification result
    """
    db = SessionLocal()

    try:
        debt = db.query(Debt).filter(Debt.id == debt_id).first()

        if not debt or not debt.is_paid:
            return {"status": "skipped", "debt_id": debt_id}

        logger.info(
            f"Debt #{debt.id} of {debt.debtor_name} settled: "
            f"{debt.total_amount} repaid in {len(debt.payments)} payment(s)"
        )

        return {
            "status": "sent",
            "debt_id": debt.id,
            "debtor_name": debt.debtor_name,
            "payments": len(debt.payments),
        }

    except SQLAlchemyError as e:
        logger.error(f"Settlement notice for debt #{debt_id} failed: {e}")
        raise self.retry(exc=e, countdown=30)

    finally:
        db.close()


def dispatch(task, *args) -> bool:
    """
    Queue a post-commit task without letting broker trouble reach the caller.

    The ledger write has already committed when this runs, so an unreachable
    broker is logged and the request still succeeds.

    Returns:
        True if the task was queued
    """
    try:
        task.delay(*args)
    except KombuOperationalError as e:
        logger.warning(f"Could not queue {task.name}{args}: {e}")
        return False
    return True
