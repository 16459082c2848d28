# apps/history/services.py
import logging
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from apps.utils.exceptions import EntityNotFound, InvalidInput, TransientPersistenceFailure

from .models import BusinessHistoryYear, BusinessHistoryMonth, BusinessHistoryDay, HistoryFailure

logger = logging.getLogger(__name__)


def resolve_day(occurred_at: datetime):
    """
    (year, month, day) of a timestamp in UTC. Naive values are taken as UTC.
    """
    if timezone.is_naive(occurred_at):
        occurred_at = occurred_at.replace(tzinfo=dt_timezone.utc)
    utc = occurred_at.astimezone(dt_timezone.utc)
    return utc.year, utc.month, utc.day


def _get_day_row(year: int, month: int, day: int) -> BusinessHistoryDay:
    # get_or_create re-reads on a unique-constraint race, so creation is safe too
    year_row, _ = BusinessHistoryYear.objects.get_or_create(year=year)
    month_row, _ = BusinessHistoryMonth.objects.get_or_create(history_year=year_row, month=month)
    day_row, _ = BusinessHistoryDay.objects.get_or_create(history_month=month_row, day=day)
    return day_row


def record_order(occurred_at: datetime, profit_delta, order_count_delta: int = 1):
    """
    Add one order's profit and count to the day it was created on.
    """
    year, month, day = resolve_day(occurred_at)
    profit_delta = Decimal(str(profit_delta))

    try:
        with transaction.atomic():
            day_row = _get_day_row(year, month, day)
            BusinessHistoryDay.objects.filter(pk=day_row.pk).update(
                total_profit=F("total_profit") + profit_delta,
                total_orders=F("total_orders") + order_count_delta,
            )
    except DatabaseError as exc:
        raise TransientPersistenceFailure(f"History update for {year}-{month:02d}-{day:02d} failed: {exc}") from exc

    logger.debug("History %s-%02d-%02d += %s (%d orders)", year, month, day, profit_delta, order_count_delta)
    return year, month, day


def log_failure(occurred_at, profit_delta, order_count_delta=1, order_id="", invoice_id="", error="", attempts=0):
    """
    Park an update that could not be applied so it can be replayed later.
    """
    logger.error(
        "History update for order %s abandoned after %d attempts: %s",
        invoice_id or order_id, attempts, error,
        extra={"order_id": order_id, "invoice_id": invoice_id},
    )
    try:
        return HistoryFailure.objects.create(
            order_id=order_id or "",
            invoice_id=invoice_id or "",
            occurred_at=occurred_at,
            profit_delta=Decimal(str(profit_delta)),
            order_count_delta=order_count_delta,
            error=str(error)[:2000],
            attempts=attempts,
        )
    except DatabaseError:
        # The log line above is then the only record left
        logger.exception("Could not store history failure for order %s", invoice_id or order_id)
        return None


def replay_failure(failure: HistoryFailure) -> bool:
    try:
        record_order(failure.occurred_at, failure.profit_delta, failure.order_count_delta)
    except TransientPersistenceFailure as exc:
        failure.attempts += 1
        failure.error = str(exc)[:2000]
        failure.save(update_fields=["attempts", "error"])
        return False

    failure.resolved_at = timezone.now()
    failure.save(update_fields=["resolved_at"])
    return True


def get_year(year: int) -> BusinessHistoryYear:
    try:
        return BusinessHistoryYear.objects.prefetch_related("months__days").get(year=year)
    except BusinessHistoryYear.DoesNotExist:
        raise EntityNotFound(f"No history recorded for {year}.", field="year", value=year)


@transaction.atomic
def upsert_history(payload: dict) -> bool:
    """
    Merge a manually reconciled {year, months: [{month, days: [...]}]} tree.

    Days present in the payload overwrite the stored counters; everything
    else is left alone. Returns True when the year was newly created.
    """
    year_row, created = BusinessHistoryYear.objects.get_or_create(year=payload["year"])

    for month_data in payload.get("months", []):
        month_row, _ = BusinessHistoryMonth.objects.get_or_create(
            history_year=year_row, month=month_data["month"]
        )
        for day_data in month_data.get("days", []):
            try:
                datetime(year_row.year, month_row.month, day_data["day"])
            except ValueError:
                raise InvalidInput(
                    f"{year_row.year}-{month_row.month:02d}-{day_data['day']:02d} is not a calendar date.",
                    field="day",
                    value=day_data["day"],
                )
            BusinessHistoryDay.objects.update_or_create(
                history_month=month_row,
                day=day_data["day"],
                defaults={
                    "total_profit": day_data["total_profit"],
                    "total_orders": day_data["total_orders"],
                },
            )

    logger.info("History for %s %s manually", year_row.year, "created" if created else "updated")
    return created


def delete_year(year: int):
    deleted, _ = BusinessHistoryYear.objects.filter(year=year).delete()
    if not deleted:
        raise EntityNotFound(f"No history recorded for {year}.", field="year", value=year)
    logger.info("History for %s deleted", year)
