# apps/history/tasks.py
import logging
from decimal import Decimal

from celery import shared_task
from django.conf import settings
from django.utils.dateparse import parse_datetime
from kombu.exceptions import OperationalError as BrokerError

from apps.utils.exceptions import TransientPersistenceFailure

from .services import record_order, log_failure

logger = logging.getLogger(__name__)


def backoff_countdown(retries: int) -> int:
    """
    Delay before retry number `retries + 1`: base, 2*base, 4*base, ...
    """
    return settings.HISTORY_RETRY_BASE_DELAY * (2 ** retries)


@shared_task(bind=True, acks_late=True)
def record_order_history(self, occurred_at: str, profit_delta: str, order_count_delta: int = 1,
                         order_id: str = "", invoice_id: str = ""):
    """
    Add a created order to the business history rollup.

    Runs outside the order transaction. Storage failures are retried with
    exponential backoff; once retries run out the update is parked in
    HistoryFailure and the task finishes without raising.
    """
    when = parse_datetime(occurred_at)
    max_retries = settings.HISTORY_MAX_RETRIES

    try:
        record_order(when, Decimal(profit_delta), order_count_delta)
    except TransientPersistenceFailure as exc:
        attempt = self.request.retries + 1
        if self.request.retries >= max_retries:
            log_failure(
                when, profit_delta, order_count_delta,
                order_id=order_id, invoice_id=invoice_id, error=exc, attempts=attempt,
            )
            return False

        countdown = backoff_countdown(self.request.retries)
        logger.warning(
            "History update for order %s failed (attempt %d/%d), retrying in %ss",
            invoice_id or order_id, attempt, max_retries + 1, countdown,
            extra={"order_id": order_id, "invoice_id": invoice_id},
        )
        raise self.retry(exc=exc, countdown=countdown, max_retries=max_retries)

    return True


def schedule_order_history(order_id: str, invoice_id: str, occurred_at: str, profit_delta: str):
    """
    Queue the history update for a committed order without waiting on it.
    """
    try:
        record_order_history.delay(
            occurred_at, profit_delta, 1, order_id=order_id, invoice_id=invoice_id
        )
    except BrokerError as exc:
        log_failure(
            parse_datetime(occurred_at), profit_delta, 1,
            order_id=order_id, invoice_id=invoice_id, error=exc, attempts=0,
        )
