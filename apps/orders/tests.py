# apps/orders/tests.py
from datetime import date, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone

from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Item
from apps.customers.models import Customer
from apps.history.models import BusinessHistoryDay, HistoryFailure
from apps.utils.exceptions import (
    DuplicateInvoice,
    EmptyOrder,
    EntityNotFound,
    InvalidAmount,
    InvalidInput,
    OrderClosed,
    TransientPersistenceFailure,
)

from .models import Order, OrderStatus, PaymentMethod
from .pricing import LineInput, compute_line, compute_order_totals, derive_status
from .services import OrderLedger, OrderService

User = get_user_model()

SCENARIO_ITEMS = [
    {"item_name": "Rice 1kg", "unit_price": "10.00", "discount_amount": "1.00", "quantity": 2},
    {"item_name": "Tea 500g", "unit_price": "20.00", "discount_amount": "0", "quantity": 1},
]


def custom_line(price, quantity=1, discount="0", name="Custom item"):
    return {"item_name": name, "unit_price": price, "discount_amount": discount, "quantity": quantity}


class PricingTests(SimpleTestCase):
    def test_line_total(self):
        self.assertEqual(compute_line("10.00", "1.00", 2), Decimal("18.00"))

    def test_line_total_never_negative(self):
        self.assertEqual(compute_line("5.00", "8.00", 3), Decimal("0.00"))

    def test_order_totals(self):
        totals = compute_order_totals(
            [LineInput(Decimal("10"), 2, Decimal("1")), LineInput(Decimal("20"), 1)],
            Decimal("0"),
        )
        self.assertEqual(totals.subtotal, Decimal("40.00"))
        self.assertEqual(totals.discount_total, Decimal("2.00"))
        self.assertEqual(totals.total_price, Decimal("38.00"))

    def test_order_discount_floors_at_zero(self):
        totals = compute_order_totals([LineInput(Decimal("10"), 1)], Decimal("25"))
        self.assertEqual(totals.total_price, Decimal("0.00"))

    def test_rounding_is_half_up(self):
        self.assertEqual(compute_line("0.005", "0", 1), Decimal("0.01"))

    def test_rejects_invalid_lines(self):
        for price, discount, quantity in [
            ("-1", "0", 1),
            ("10", "-1", 1),
            ("10", "0", 0),
            ("10", "0", -2),
            ("10", "0", 1.5),
        ]:
            with self.subTest(price=price, discount=discount, quantity=quantity):
                with self.assertRaises(InvalidInput):
                    compute_line(price, discount, quantity)

    def test_rejects_negative_order_discount(self):
        with self.assertRaises(InvalidInput):
            compute_order_totals([LineInput(Decimal("10"), 1)], Decimal("-1"))

    def test_status_derivation(self):
        self.assertEqual(derive_status(0, 38, 38), OrderStatus.PENDING)
        self.assertEqual(derive_status(10, 28, 38), OrderStatus.PARTIALLY_PAID)
        self.assertEqual(derive_status(38, 0, 38), OrderStatus.FULLY_PAID)
        self.assertEqual(derive_status(0, 0, 0), OrderStatus.FULLY_PAID)
        self.assertEqual(derive_status(38, 0, 38, is_cancelled=True), OrderStatus.CANCELLED)


class OrderLedgerTests(TestCase):
    def test_create_order_computes_totals(self):
        order = OrderLedger.create_order("INV-1", SCENARIO_ITEMS)

        self.assertEqual(order.subtotal, Decimal("40.00"))
        self.assertEqual(order.total_discount, Decimal("2.00"))
        self.assertEqual(order.total_price, Decimal("38.00"))
        self.assertEqual(order.paid_amount, Decimal("0.00"))
        self.assertEqual(order.outstanding_amount, Decimal("38.00"))
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.items.count(), 2)
        self.assertEqual(order.timeline.count(), 1)

    def test_zero_total_order_is_fully_paid(self):
        order = OrderLedger.create_order("INV-FREE", [custom_line("10.00")], order_discount="10.00")
        self.assertEqual(order.status, OrderStatus.FULLY_PAID)

    def test_full_payment_closes_order(self):
        order = OrderLedger.create_order("INV-1", SCENARIO_ITEMS)

        order = OrderLedger.add_payment(order.id, "38.00", PaymentMethod.CASH)
        self.assertEqual(order.paid_amount, Decimal("38.00"))
        self.assertEqual(order.outstanding_amount, Decimal("0.00"))
        self.assertEqual(order.status, OrderStatus.FULLY_PAID)

        with self.assertRaises(OrderClosed):
            OrderLedger.add_payment(order.id, "1.00", PaymentMethod.CASH)

    def test_paid_amount_tracks_payment_history(self):
        order = OrderLedger.create_order("INV-2", [custom_line("100.00")])

        for amount in ("10.00", "25.50", "4.50"):
            order = OrderLedger.add_payment(order.id, amount, PaymentMethod.CARD)

        self.assertEqual(order.paid_amount, Decimal("40.00"))
        self.assertEqual(order.outstanding_amount, Decimal("60.00"))
        self.assertEqual(order.status, OrderStatus.PARTIALLY_PAID)
        self.assertEqual(order.payments.count(), 3)

    def test_rejects_non_positive_payment(self):
        order = OrderLedger.create_order("INV-3", [custom_line("10.00")])
        for amount in ("0", "-5"):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidAmount):
                    OrderLedger.add_payment(order.id, amount, PaymentMethod.CASH)

    def test_unknown_payment_method(self):
        order = OrderLedger.create_order("INV-4", [custom_line("10.00")])
        with self.assertRaises(InvalidInput):
            OrderLedger.add_payment(order.id, "5.00", "CHEQUE")

    def test_duplicate_invoice(self):
        OrderLedger.create_order("INV-1", SCENARIO_ITEMS)
        with self.assertRaises(DuplicateInvoice):
            OrderLedger.create_order("INV-1", SCENARIO_ITEMS)
        self.assertEqual(Order.objects.filter(invoice_id="INV-1").count(), 1)

    def test_empty_order(self):
        with self.assertRaises(EmptyOrder):
            OrderLedger.create_order("INV-5", [])

    def test_cancelled_order_stays_cancelled(self):
        order = OrderLedger.create_order("INV-6", [custom_line("50.00")])
        OrderLedger.add_payment(order.id, "20.00", PaymentMethod.CASH)

        order = OrderLedger.cancel_order(order.id, reason="Customer returned goods")
        self.assertEqual(order.status, OrderStatus.CANCELLED)
        self.assertEqual(order.paid_amount, Decimal("20.00"))

        with self.assertRaises(OrderClosed):
            OrderLedger.add_payment(order.id, "5.00", PaymentMethod.CASH)
        with self.assertRaises(OrderClosed):
            OrderLedger.update_items(order.id, [custom_line("10.00")])

        # second cancel is a no-op
        order = OrderLedger.cancel_order(order.id)
        self.assertEqual(order.status, OrderStatus.CANCELLED)

    def test_update_items_keeps_paid_amount(self):
        order = OrderLedger.create_order("INV-7", [custom_line("50.00")])
        OrderLedger.add_payment(order.id, "50.00", PaymentMethod.CASH)

        order = OrderLedger.update_items(order.id, [custom_line("50.00"), custom_line("30.00")])
        self.assertEqual(order.total_price, Decimal("80.00"))
        self.assertEqual(order.paid_amount, Decimal("50.00"))
        self.assertEqual(order.outstanding_amount, Decimal("30.00"))
        self.assertEqual(order.status, OrderStatus.PARTIALLY_PAID)

    def test_update_discount_only_keeps_lines(self):
        order = OrderLedger.create_order("INV-8", SCENARIO_ITEMS)

        order = OrderLedger.update_items(order.id, order_discount="8.00")
        self.assertEqual(order.items.count(), 2)
        self.assertEqual(order.total_price, Decimal("30.00"))

    def test_catalog_prices(self):
        item = Item.objects.create(
            sku_code="SUGAR-1", name="Sugar 1kg", retail_price=Decimal("12.00"), wholesale_price=Decimal("10.00")
        )

        retail = OrderLedger.create_order("INV-9", [{"item_id": item.id, "quantity": 3}])
        wholesale = OrderLedger.create_order("INV-10", [{"item_id": item.id, "quantity": 3}], is_wholesale=True)

        self.assertEqual(retail.total_price, Decimal("36.00"))
        self.assertEqual(wholesale.total_price, Decimal("30.00"))
        self.assertEqual(retail.items.get().item_name, "Sugar 1kg")

    def test_inactive_catalog_item_rejected(self):
        item = Item.objects.create(sku_code="OLD-1", name="Old stock", retail_price=Decimal("5.00"), is_active=False)
        with self.assertRaises(InvalidInput):
            OrderLedger.create_order("INV-11", [{"item_id": item.id, "quantity": 1}])

    def test_missing_order(self):
        with self.assertRaises(EntityNotFound):
            OrderLedger.add_payment("00000000-0000-0000-0000-000000000000", "5.00", PaymentMethod.CASH)


class OrderServiceTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Ali Traders", phone="03001234567")

    def create(self, invoice_id, price, **kwargs):
        return OrderService.create_order(invoice_id, [custom_line(price)], customer_id=self.customer.id, **kwargs)

    def test_customer_balance_follows_orders(self):
        first = self.create("INV-1", "100.00")
        self.create("INV-2", "50.00")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_amount, Decimal("150.00"))

        OrderService.add_payment(first.id, "100.00", PaymentMethod.CASH)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_amount, Decimal("50.00"))
        self.assertEqual(self.customer.paid_amount, Decimal("100.00"))

    def test_initial_payment(self):
        order = self.create("INV-3", "80.00", initial_payment={"amount": "30.00", "method": PaymentMethod.CARD})

        self.assertEqual(order.paid_amount, Decimal("30.00"))
        self.assertEqual(order.status, OrderStatus.PARTIALLY_PAID)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_amount, Decimal("50.00"))

    def test_non_positive_initial_payment_rolls_back_order(self):
        for amount in ("0.00", "-50.00"):
            with self.assertRaises(InvalidAmount):
                self.create("INV-5", "80.00", initial_payment={"amount": amount})

        self.assertFalse(Order.objects.filter(invoice_id="INV-5").exists())
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_amount, Decimal("0.00"))

    def test_failed_creation_leaves_nothing_behind(self):
        with mock.patch(
            "apps.orders.services.CustomerService.recalculate",
            side_effect=RuntimeError("boom"),
        ):
            with self.assertRaises(RuntimeError):
                self.create("INV-4", "10.00")

        self.assertFalse(Order.objects.filter(invoice_id="INV-4").exists())

    def test_unknown_customer_is_rejected_before_writing(self):
        with self.assertRaises(EntityNotFound):
            OrderService.create_order(
                "INV-5", [custom_line("10.00")], customer_id="00000000-0000-0000-0000-000000000000"
            )
        self.assertFalse(Order.objects.exists())

    def test_walk_in_order(self):
        order = OrderService.create_order(
            "INV-6", [custom_line("10.00")], walk_in={"name": "Bilal", "phone": "03111111111"}
        )
        self.assertTrue(order.is_walk_in)
        self.assertEqual(order.walk_in_name, "Bilal")

    def test_history_updated_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            order = self.create("INV-7", "120.00")

        self.assertEqual(len(callbacks), 1)
        created = order.created_at.astimezone(dt_timezone.utc)
        day = BusinessHistoryDay.objects.get(
            history_month__history_year__year=created.year,
            history_month__month=created.month,
            day=created.day,
        )
        self.assertEqual(day.total_profit, Decimal("120.00"))
        self.assertEqual(day.total_orders, 1)

    def test_same_day_orders_roll_up(self):
        with self.captureOnCommitCallbacks(execute=True):
            orders = [self.create(f"INV-D{i}", price) for i, price in enumerate(("10.00", "20.00", "30.00"))]

        created = orders[0].created_at.astimezone(dt_timezone.utc)
        day = BusinessHistoryDay.objects.get(
            history_month__history_year__year=created.year,
            history_month__month=created.month,
            day=created.day,
        )
        self.assertEqual(day.total_profit, Decimal("60.00"))
        self.assertEqual(day.total_orders, 3)

    def test_rejected_duplicate_schedules_no_history(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(DuplicateInvoice):
                self.create("INV-8", "10.00")
                self.create("INV-8", "10.00")

        self.assertEqual(len(callbacks), 1)

    def test_history_failure_does_not_fail_order(self):
        with mock.patch(
            "apps.history.tasks.record_order",
            side_effect=TransientPersistenceFailure("database unavailable"),
        ):
            with self.captureOnCommitCallbacks(execute=True):
                order = self.create("INV-9", "10.00")

        self.assertTrue(Order.objects.filter(id=order.id).exists())
        self.assertEqual(HistoryFailure.objects.get().invoice_id, "INV-9")

    def test_delete_order_recalculates_customer(self):
        order = self.create("INV-10", "40.00")
        OrderService.delete_order(order.id)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_amount, Decimal("0.00"))
        self.assertFalse(Order.objects.filter(id=order.id).exists())

    def test_archive_by_date_range(self):
        old = self.create("INV-11", "40.00")
        recent = self.create("INV-12", "60.00")
        Order.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=10))

        today = timezone.localdate()
        count = OrderService.archive_orders(start_date=today - timedelta(days=11), end_date=today - timedelta(days=9))

        self.assertEqual(count, 1)
        old.refresh_from_db()
        recent.refresh_from_db()
        self.assertTrue(old.is_archived)
        self.assertIsNotNone(old.archived_at)
        self.assertFalse(recent.is_archived)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.outstanding_amount, Decimal("60.00"))

    def test_archive_requires_range_or_confirmation(self):
        self.create("INV-13", "10.00")

        with self.assertRaises(InvalidInput):
            OrderService.archive_orders()
        with self.assertRaises(InvalidInput):
            OrderService.archive_orders(start_date=date(2024, 1, 1))
        with self.assertRaises(InvalidInput):
            OrderService.archive_orders(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))

        self.assertEqual(OrderService.archive_orders(confirm_all=True), 1)
        self.assertEqual(OrderService.archive_orders(confirm_all=True), 0)


class OrderAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="cashier", password="testpass123")
        self.admin = User.objects.create_user(username="owner", password="testpass123", is_staff=True)
        self.client.force_authenticate(self.user)
        self.list_url = reverse("orders-list")

    def create_order(self, invoice_id="INV-1", items=None, **extra):
        payload = {"invoice_id": invoice_id, "items": items or SCENARIO_ITEMS, **extra}
        return self.client.post(self.list_url, payload, format="json")

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        resp = self.client.get(self.list_url)
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_and_retrieve(self):
        resp = self.create_order()
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["total_price"], "38.00")
        self.assertEqual(resp.data["status"], OrderStatus.PENDING)
        self.assertEqual(len(resp.data["items"]), 2)

        detail = self.client.get(reverse("orders-detail", args=[resp.data["id"]]))
        self.assertEqual(detail.status_code, status.HTTP_200_OK)
        self.assertEqual(detail.data["invoice_id"], "INV-1")

    def test_duplicate_invoice_error_payload(self):
        self.create_order()
        resp = self.create_order()

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "duplicate_invoice")
        self.assertEqual(resp.data["field"], "invoice_id")

    def test_empty_order_error_payload(self):
        resp = self.client.post(self.list_url, {"invoice_id": "INV-2", "items": []}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "empty_order")

    def test_negative_initial_payment_error_payload(self):
        resp = self.create_order("INV-9", initial_payment={"amount": "-50.00"})

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "invalid_amount")
        self.assertFalse(Order.objects.filter(invoice_id="INV-9").exists())

    def test_payment_flow(self):
        order_id = self.create_order().data["id"]
        url = reverse("orders-payment", args=[order_id])

        resp = self.client.post(url, {"amount": "38.00", "method": "CASH"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], OrderStatus.FULLY_PAID)
        self.assertEqual(resp.data["outstanding_amount"], "0.00")

        resp = self.client.post(url, {"amount": "1.00", "method": "CASH"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "order_closed")

    def test_payment_idempotency_key_replays_response(self):
        order_id = self.create_order().data["id"]
        url = reverse("orders-payment", args=[order_id])

        first = self.client.post(url, {"amount": "10.00"}, format="json", HTTP_IDEMPOTENCY_KEY="pay-1")
        second = self.client.post(url, {"amount": "10.00"}, format="json", HTTP_IDEMPOTENCY_KEY="pay-1")

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.json()["paid_amount"], "10.00")
        self.assertEqual(Order.objects.get(id=order_id).payments.count(), 1)

    def test_patch_order_discount(self):
        order_id = self.create_order().data["id"]
        resp = self.client.patch(reverse("orders-detail", args=[order_id]), {"order_discount": "8.00"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["total_price"], "30.00")

    def test_cancel(self):
        order_id = self.create_order().data["id"]
        resp = self.client.post(reverse("orders-cancel", args=[order_id]), {"reason": "wrong items"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], OrderStatus.CANCELLED)

    def test_list_filters_and_hides_archived(self):
        self.create_order("INV-1")
        self.create_order("INV-2")
        OrderService.archive_orders(confirm_all=True)
        self.create_order("INV-3")

        resp = self.client.get(self.list_url)
        self.assertEqual(resp.data["count"], 1)

        resp = self.client.get(self.list_url, {"include_archived": "true"})
        self.assertEqual(resp.data["count"], 3)

        resp = self.client.get(self.list_url, {"invoice_id": "inv-3"})
        self.assertEqual(resp.data["results"][0]["invoice_id"], "INV-3")

    def test_hard_delete_is_admin_only(self):
        order_id = self.create_order().data["id"]
        url = reverse("orders-detail", args=[order_id])

        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_bulk_archive(self):
        self.create_order("INV-1")
        self.create_order("INV-2")

        self.assertEqual(self.client.delete(self.list_url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        resp = self.client.delete(self.list_url)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "confirmation_required")

        today = timezone.localdate().isoformat()
        resp = self.client.delete(f"{self.list_url}?startDate={today}&endDate={today}")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["archived_count"], 2)
