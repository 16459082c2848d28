from django.conf import settings
from django.db import models
from django.utils import timezone

from .order import Order, PaymentMethod


class OrderPayment(models.Model):
    """
    Append-only record of money received against an order.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    notes = models.TextField(blank=True)
    paid_at = models.DateTimeField(default=timezone.now)

    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )

    class Meta:
        ordering = ["paid_at", "id"]

    def __str__(self):
        return f"{self.amount} via {self.method} for {self.order_id}"
