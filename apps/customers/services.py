import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Q, Sum

from apps.utils.exceptions import (
    BusinessLogicException,
    DuplicateKey,
    EntityNotFound,
    InvalidAmount,
)

from .models import Customer

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
UNIQUE_FIELDS = ("phone", "cnic")


class CustomerService:
    """
    Customer records and the balance aggregate derived from their orders.
    """

    @staticmethod
    def get(customer_id) -> Customer:
        try:
            return Customer.objects.get(id=customer_id)
        except Customer.DoesNotExist:
            raise EntityNotFound(f"Customer {customer_id} not found.", field="customer_id", value=customer_id)

    @staticmethod
    @transaction.atomic
    def recalculate(customer_id) -> Customer:
        """
        Re-derive paid/outstanding totals from the customer's non-archived orders.

        The stored values are replaced outright, so running this twice with no
        order change in between is a no-op. Joins the caller's transaction and
        rolls back with it.
        """
        try:
            customer = Customer.objects.select_for_update().get(id=customer_id)
        except Customer.DoesNotExist:
            raise EntityNotFound(f"Customer {customer_id} not found.", field="customer_id", value=customer_id)

        totals = customer.orders.filter(is_archived=False).aggregate(
            outstanding=Sum("outstanding_amount"),
            paid=Sum("paid_amount"),
        )
        customer.outstanding_amount = max(ZERO, totals["outstanding"] or ZERO)
        customer.paid_amount = max(ZERO, totals["paid"] or ZERO)
        customer.save(update_fields=["outstanding_amount", "paid_amount", "updated_at"])

        logger.debug(
            "Recalculated customer balance: outstanding=%s paid=%s",
            customer.outstanding_amount,
            customer.paid_amount,
            extra={"customer_id": customer.id},
        )
        return customer

    @staticmethod
    def _check_unique(data: dict, exclude_id=None):
        for field in UNIQUE_FIELDS:
            value = data.get(field)
            if not value:
                continue
            qs = Customer.objects.filter(**{field: value})
            if exclude_id:
                qs = qs.exclude(id=exclude_id)
            if qs.exists():
                raise DuplicateKey(field, value)

    @staticmethod
    def _translate_integrity_error(data: dict, exc: IntegrityError):
        message = str(exc).lower()
        for field in UNIQUE_FIELDS:
            if field in message and data.get(field):
                raise DuplicateKey(field, data[field]) from exc
        raise DuplicateKey("phone", data.get("phone")) from exc

    @staticmethod
    def create_customer(data: dict) -> Customer:
        CustomerService._check_unique(data)
        try:
            with transaction.atomic():
                return Customer.objects.create(
                    name=data["name"],
                    phone=data["phone"],
                    cnic=data.get("cnic") or None,
                    address=data.get("address", ""),
                )
        except IntegrityError as exc:
            CustomerService._translate_integrity_error(data, exc)

    @staticmethod
    def update_customer(customer_id, data: dict) -> Customer:
        customer = CustomerService.get(customer_id)
        CustomerService._check_unique(data, exclude_id=customer.id)

        # Balances are derived, never written from input
        for field in ("name", "phone", "address"):
            if field in data:
                setattr(customer, field, data[field])
        if "cnic" in data:
            customer.cnic = data["cnic"] or None

        try:
            with transaction.atomic():
                customer.save()
        except IntegrityError as exc:
            CustomerService._translate_integrity_error(data, exc)
        return customer

    @staticmethod
    @transaction.atomic
    def delete_customer(customer_id):
        customer = CustomerService.get(customer_id)
        if customer.orders.exists():
            raise BusinessLogicException(
                "Customer has linked orders and cannot be deleted.",
                code="customer_has_orders",
            )
        customer.delete()
        logger.info("Customer deleted", extra={"customer_id": customer_id})

    @staticmethod
    def search(query: str):
        cnic_query = query.replace("-", "").strip()
        cnic_match = Q(cnic__icontains=cnic_query) if cnic_query else Q()
        return Customer.objects.filter(
            Q(name__icontains=query) | cnic_match | Q(phone__icontains=query)
        )

    @staticmethod
    def with_outstanding_balance():
        return Customer.objects.filter(outstanding_amount__gt=0).order_by("-outstanding_amount")

    @staticmethod
    def paid_off():
        return Customer.objects.filter(outstanding_amount__lte=0)

    @staticmethod
    def cancelled_outstanding(customer: Customer) -> Decimal:
        """
        Part of the outstanding balance sitting on cancelled orders.

        It counts towards `outstanding_amount` but no payment can settle it.
        """
        from apps.orders.models import OrderStatus

        total = customer.orders.filter(
            is_archived=False, status=OrderStatus.CANCELLED,
        ).aggregate(s=Sum("outstanding_amount"))["s"]
        return max(ZERO, total or ZERO)

    @staticmethod
    @transaction.atomic
    def apply_payment(customer_id, amount, method, notes="", recorded_by=None) -> Customer:
        """
        Settle a customer-level payment against open orders, oldest first.

        Order rows are locked before the customer row, the same order every
        order write uses. Every order payment goes through the order ledger
        so order and customer totals stay consistent; anything beyond what
        the open orders owe is rejected since there is no credit balance.
        """
        from apps.orders.models import Order, OrderStatus
        from apps.orders.pricing import to_money
        from apps.orders.services import OrderLedger

        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount("Payment amount must be greater than zero.", field="amount", value=amount)

        customer = CustomerService.get(customer_id)
        open_orders = list(
            Order.objects.select_for_update()
            .filter(customer_id=customer.id, is_archived=False, outstanding_amount__gt=0)
            .exclude(status__in=[OrderStatus.FULLY_PAID, OrderStatus.CANCELLED])
            .order_by("created_at", "invoice_id")
        )

        payable = sum((order.outstanding_amount for order in open_orders), ZERO)
        if amount > payable:
            # Outstanding on cancelled orders can't take money
            raise InvalidAmount(
                f"Payment of {amount} exceeds the {payable} owed on open orders.",
                field="amount",
                value=amount,
            )

        remaining = amount
        for order in open_orders:
            if remaining <= 0:
                break
            portion = min(remaining, order.outstanding_amount)
            OrderLedger.add_payment(
                order.id,
                portion,
                method,
                notes=notes or "Customer account payment",
                recorded_by=recorded_by,
            )
            remaining -= portion

        logger.info("Customer payment of %s applied", amount, extra={"customer_id": customer.id})
        return CustomerService.recalculate(customer.id)
