import logging
from datetime import datetime, time, timedelta
from decimal import Decimal
from functools import partial

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from apps.catalog.services import CatalogService, PRICE_TYPE_RETAIL, PRICE_TYPE_WHOLESALE
from apps.customers.services import CustomerService
from apps.history.tasks import schedule_order_history
from apps.utils.exceptions import (
    DuplicateInvoice,
    EmptyOrder,
    EntityNotFound,
    InvalidAmount,
    InvalidInput,
    OrderClosed,
)

from .models import Order, OrderItem, OrderPayment, OrderStatus, OrderTimeline, PaymentMethod
from .pricing import (
    LineInput,
    ZERO,
    compute_line,
    compute_order_totals,
    compute_outstanding,
    derive_status,
    to_money,
)

logger = logging.getLogger(__name__)


def _lock_order(order_id) -> Order:
    try:
        return Order.objects.select_for_update().get(id=order_id)
    except Order.DoesNotExist:
        raise EntityNotFound(f"Order {order_id} not found.", field="order_id", value=order_id)


def _price_lines(items: list, is_wholesale: bool) -> list:
    """
    Resolve names/prices for the submitted items and compute each line.

    Each entry is either a catalog reference (`item_id`, optional
    `unit_price` override) or a custom line (`item_name` + `unit_price`).
    """
    default_price_type = PRICE_TYPE_WHOLESALE if is_wholesale else PRICE_TYPE_RETAIL
    catalog_ids = [i["item_id"] for i in items if i.get("item_id")]
    quotes = {}
    for price_type in (PRICE_TYPE_RETAIL, PRICE_TYPE_WHOLESALE):
        ids = [
            i["item_id"] for i in items
            if i.get("item_id") and (i.get("price_type") or default_price_type) == price_type
        ]
        if ids:
            quotes[price_type] = CatalogService.quote_items(ids, price_type=price_type)

    lines = []
    for position, raw in enumerate(items):
        price_type = raw.get("price_type") or default_price_type
        item_id = raw.get("item_id")
        name = raw.get("item_name") or ""
        unit_price = raw.get("unit_price")

        if item_id:
            quote = quotes[price_type][item_id]
            name = name or quote.name
            if unit_price is None:
                unit_price = quote.price
        elif unit_price is None or not name:
            raise InvalidInput(
                "Items without a catalog reference need item_name and unit_price.",
                field="items",
            )

        unit_price = to_money(unit_price)
        discount = to_money(raw.get("discount_amount") or ZERO)
        quantity = raw.get("quantity")
        line_total = compute_line(unit_price, discount, quantity)

        lines.append({
            "item_id": item_id,
            "item_name": name,
            "price_type": price_type,
            "unit_price": unit_price,
            "discount_amount": discount,
            "quantity": quantity,
            "line_total": line_total,
            "position": position,
        })

    logger.debug("Priced %d lines (%d from catalog)", len(lines), len(catalog_ids))
    return lines


def _apply_payment_state(order: Order, paid: Decimal):
    order.paid_amount = paid
    order.outstanding_amount = compute_outstanding(order.total_price, paid)
    order.status = derive_status(
        paid,
        order.outstanding_amount,
        order.total_price,
        is_cancelled=order.status == OrderStatus.CANCELLED,
    )


def _current_lines(order: Order) -> list:
    return [
        {
            # Lines whose catalog item is gone or retired keep their captured price
            "item_id": line.item_id if line.item is not None and line.item.is_active else None,
            "item_name": line.item_name,
            "price_type": line.price_type,
            "unit_price": line.unit_price,
            "discount_amount": line.discount_amount,
            "quantity": line.quantity,
        }
        for line in order.items.select_related("item")
    ]


def _record_timeline(order: Order, note: str, user=None):
    OrderTimeline.objects.create(
        order=order,
        status=order.status,
        note=note,
        created_by=user if user is not None and user.is_authenticated else None,
    )


class OrderLedger:
    """
    Owns an order's money fields: totals from items, paid/outstanding/status
    from the payment history. Does not touch customers or history.
    """

    @staticmethod
    @transaction.atomic
    def create_order(
        invoice_id: str,
        items: list,
        customer=None,
        walk_in: dict = None,
        order_discount=ZERO,
        payment_method: str = "",
        is_wholesale: bool = False,
        notes: str = "",
        created_by=None,
    ) -> Order:
        if not items:
            raise EmptyOrder("An order needs at least one item.", field="items")
        if Order.objects.filter(invoice_id=invoice_id).exists():
            raise DuplicateInvoice(invoice_id)

        lines = _price_lines(items, is_wholesale)
        totals = compute_order_totals(
            [LineInput(l["unit_price"], l["quantity"], l["discount_amount"]) for l in lines],
            order_discount,
        )

        walk_in = walk_in or {}
        order = Order(
            invoice_id=invoice_id,
            customer=customer,
            walk_in_name=walk_in.get("name", "") if customer is None else "",
            walk_in_cnic=walk_in.get("cnic", "") if customer is None else "",
            walk_in_phone=walk_in.get("phone", "") if customer is None else "",
            payment_method=payment_method or "",
            is_wholesale=is_wholesale,
            notes=notes or "",
            subtotal=totals.subtotal,
            total_discount=totals.discount_total,
            order_discount=to_money(order_discount),
            total_price=totals.total_price,
        )
        _apply_payment_state(order, ZERO)

        try:
            with transaction.atomic():
                order.save(force_insert=True)
        except IntegrityError:
            # Lost the race against a concurrent insert of the same invoice
            raise DuplicateInvoice(invoice_id)

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                item_id=l["item_id"],
                item_name=l["item_name"],
                price_type=l["price_type"],
                unit_price=l["unit_price"],
                discount_amount=l["discount_amount"],
                quantity=l["quantity"],
                line_total=l["line_total"],
                position=l["position"],
            )
            for l in lines
        ])
        _record_timeline(order, "Order created.", created_by)

        logger.info(
            "Order created with total %s", order.total_price,
            extra={"order_id": order.id, "invoice_id": invoice_id},
        )
        return order

    @staticmethod
    @transaction.atomic
    def add_payment(order_id, amount, method, notes: str = "", recorded_by=None) -> Order:
        """
        Append a payment and re-derive paid/outstanding/status.

        The order row stays locked until the surrounding transaction
        commits, so concurrent payments on one order apply one at a time.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount("Payment amount must be greater than zero.", field="amount", value=amount)
        if method not in PaymentMethod.values:
            raise InvalidInput(f"Unknown payment method '{method}'.", field="method", value=method)

        order = _lock_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            raise OrderClosed("Cannot add a payment to a cancelled order.", field="order_id", value=order.id)
        if order.status == OrderStatus.FULLY_PAID:
            raise OrderClosed("Order is already fully paid.", field="order_id", value=order.id)

        OrderPayment.objects.create(
            order=order,
            amount=amount,
            method=method,
            notes=notes or "",
            recorded_by=recorded_by if recorded_by is not None and recorded_by.is_authenticated else None,
        )
        paid = order.payments.aggregate(s=Sum("amount"))["s"] or ZERO
        _apply_payment_state(order, paid)
        order.save(update_fields=["paid_amount", "outstanding_amount", "status", "updated_at"])

        _record_timeline(order, f"Payment of {amount} received via {method}.", recorded_by)
        logger.info(
            "Payment %s recorded, outstanding now %s", amount, order.outstanding_amount,
            extra={"order_id": order.id, "invoice_id": order.invoice_id},
        )
        return order

    @staticmethod
    @transaction.atomic
    def update_items(order_id, items: list = None, order_discount=None, updated_by=None) -> Order:
        """
        Replace the order lines and re-derive totals. `items=None` keeps the
        current lines, e.g. when only the order discount changes.
        """
        order = _lock_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            raise OrderClosed("Cannot edit a cancelled order.", field="order_id", value=order.id)
        if items is None:
            items = _current_lines(order)
        if not items:
            raise EmptyOrder("An order needs at least one item.", field="items")

        if order_discount is None:
            order_discount = order.order_discount

        lines = _price_lines(items, order.is_wholesale)
        totals = compute_order_totals(
            [LineInput(l["unit_price"], l["quantity"], l["discount_amount"]) for l in lines],
            order_discount,
        )

        order.items.all().delete()
        OrderItem.objects.bulk_create([OrderItem(order=order, **l) for l in lines])

        previous_total = order.total_price
        order.subtotal = totals.subtotal
        order.total_discount = totals.discount_total
        order.order_discount = to_money(order_discount)
        order.total_price = totals.total_price
        # paid_amount is untouched; only outstanding/status follow the new total
        _apply_payment_state(order, order.paid_amount)
        order.save()

        _record_timeline(order, f"Items updated, total {previous_total} -> {order.total_price}.", updated_by)
        return order

    @staticmethod
    @transaction.atomic
    def cancel_order(order_id, reason: str = "", cancelled_by=None) -> Order:
        order = _lock_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            return order

        order.status = OrderStatus.CANCELLED
        order.save(update_fields=["status", "updated_at"])

        _record_timeline(order, f"Cancelled: {reason}" if reason else "Cancelled.", cancelled_by)
        logger.info("Order cancelled", extra={"order_id": order.id, "invoice_id": order.invoice_id})
        return order


class OrderService:
    """
    Coordinates the ledger, the customer balance, and the history rollup.

    Order writes and the customer recalculation share one transaction; the
    history update is queued only after that transaction commits.
    """

    @staticmethod
    def _refresh_customer(customer_id):
        if customer_id:
            CustomerService.recalculate(customer_id)

    @staticmethod
    def create_order(
        invoice_id: str,
        items: list,
        customer_id=None,
        walk_in: dict = None,
        order_discount=ZERO,
        payment_method: str = "",
        is_wholesale: bool = False,
        notes: str = "",
        initial_payment: dict = None,
        user=None,
    ) -> Order:
        # Cheap checks first, before any row is written
        if not items:
            raise EmptyOrder("An order needs at least one item.", field="items")
        if Order.objects.filter(invoice_id=invoice_id).exists():
            raise DuplicateInvoice(invoice_id)
        customer = CustomerService.get(customer_id) if customer_id else None

        with transaction.atomic():
            order = OrderLedger.create_order(
                invoice_id=invoice_id,
                items=items,
                customer=customer,
                walk_in=walk_in,
                order_discount=order_discount,
                payment_method=payment_method,
                is_wholesale=is_wholesale,
                notes=notes,
                created_by=user,
            )

            # A bad initial payment rolls the whole order back
            if initial_payment:
                order = OrderLedger.add_payment(
                    order.id,
                    initial_payment["amount"],
                    initial_payment.get("method") or payment_method or PaymentMethod.CASH,
                    notes=initial_payment.get("notes", ""),
                    recorded_by=user,
                )

            OrderService._refresh_customer(order.customer_id)

            transaction.on_commit(partial(
                schedule_order_history,
                order_id=str(order.id),
                invoice_id=order.invoice_id,
                occurred_at=order.created_at.isoformat(),
                profit_delta=str(order.total_price),
            ))

        return order

    @staticmethod
    @transaction.atomic
    def add_payment(order_id, amount, method, notes: str = "", user=None) -> Order:
        order = OrderLedger.add_payment(order_id, amount, method, notes=notes, recorded_by=user)
        OrderService._refresh_customer(order.customer_id)
        return order

    @staticmethod
    @transaction.atomic
    def update_items(order_id, items: list = None, order_discount=None, user=None) -> Order:
        # History is not adjusted for edits
        order = OrderLedger.update_items(order_id, items, order_discount, updated_by=user)
        OrderService._refresh_customer(order.customer_id)
        return order

    @staticmethod
    @transaction.atomic
    def cancel_order(order_id, reason: str = "", user=None) -> Order:
        order = OrderLedger.cancel_order(order_id, reason=reason, cancelled_by=user)
        OrderService._refresh_customer(order.customer_id)
        return order

    @staticmethod
    @transaction.atomic
    def delete_order(order_id):
        order = _lock_order(order_id)
        customer_id = order.customer_id
        invoice_id = order.invoice_id
        order.delete()
        OrderService._refresh_customer(customer_id)
        logger.info("Order deleted", extra={"order_id": order_id, "invoice_id": invoice_id})

    @staticmethod
    @transaction.atomic
    def archive_orders(start_date=None, end_date=None, confirm_all: bool = False, user=None) -> int:
        """
        Soft-delete non-archived orders created between two dates (inclusive),
        or every order when `confirm_all` is set.
        """
        qs = Order.objects.filter(is_archived=False)

        if start_date or end_date:
            if not (start_date and end_date):
                raise InvalidInput("Both startDate and endDate are required.", field="startDate")
            if start_date > end_date:
                raise InvalidInput("startDate must not be after endDate.", field="startDate", value=start_date)
            tz = timezone.get_current_timezone()
            start = timezone.make_aware(datetime.combine(start_date, time.min), tz)
            end = timezone.make_aware(datetime.combine(end_date + timedelta(days=1), time.min), tz)
            qs = qs.filter(created_at__gte=start, created_at__lt=end)
        elif not confirm_all:
            raise InvalidInput(
                "Provide startDate and endDate, or confirmDeleteAll=true to archive every order.",
                code="confirmation_required",
            )

        order_ids = list(qs.select_for_update().values_list("id", flat=True))
        customer_ids = set(
            Order.objects.filter(id__in=order_ids, customer__isnull=False)
            .values_list("customer_id", flat=True)
        )

        archived_count = Order.objects.filter(id__in=order_ids).update(
            is_archived=True, archived_at=timezone.now(), updated_at=timezone.now()
        )
        OrderTimeline.objects.bulk_create([
            OrderTimeline(order_id=oid, status="ARCHIVED", note="Archived in bulk.",
                          created_by=user if user is not None and user.is_authenticated else None)
            for oid in order_ids
        ])

        for customer_id in customer_ids:
            CustomerService.recalculate(customer_id)

        logger.info("Archived %d orders across %d customers", archived_count, len(customer_ids))
        return archived_count
