# apps/history/models.py
import uuid
from decimal import Decimal
from django.db import models


class BusinessHistoryYear(models.Model):
    year = models.PositiveIntegerField(unique=True)

    class Meta:
        ordering = ["year"]
        verbose_name = "Business History Year"

    def __str__(self):
        return f"History({self.year})"


class BusinessHistoryMonth(models.Model):
    history_year = models.ForeignKey(
        BusinessHistoryYear,
        on_delete=models.CASCADE,
        related_name="months",
    )
    month = models.PositiveSmallIntegerField()

    class Meta:
        ordering = ["month"]
        constraints = [
            models.UniqueConstraint(fields=["history_year", "month"], name="uniq_history_month_per_year"),
        ]

    def __str__(self):
        return f"History({self.history_year.year}-{self.month:02d})"


class BusinessHistoryDay(models.Model):
    """
    One counter per calendar day (UTC).

    Increments go through an UPDATE with F() expressions so concurrent
    orders on the same day add up instead of overwriting each other.
    """
    history_month = models.ForeignKey(
        BusinessHistoryMonth,
        on_delete=models.CASCADE,
        related_name="days",
    )
    day = models.PositiveSmallIntegerField()

    total_profit = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal("0.00"))
    total_orders = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["day"]
        constraints = [
            models.UniqueConstraint(fields=["history_month", "day"], name="uniq_history_day_per_month"),
        ]

    def __str__(self):
        return f"History(day {self.day}: {self.total_orders} orders, {self.total_profit})"


class HistoryFailure(models.Model):
    """
    History updates that gave up after retrying, kept for manual reconciliation.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_id = models.CharField(max_length=64, blank=True)
    invoice_id = models.CharField(max_length=64, blank=True)

    occurred_at = models.DateTimeField(help_text="Order creation time the delta belongs to")
    profit_delta = models.DecimalField(max_digits=16, decimal_places=2)
    order_count_delta = models.IntegerField(default=1)

    error = models.TextField(blank=True)
    attempts = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"HistoryFailure({self.invoice_id or self.order_id}, {self.occurred_at:%Y-%m-%d})"
