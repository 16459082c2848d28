# apps/customers/tests.py
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db.models.query import QuerySet
from django.test import TestCase
from django.urls import reverse

from rest_framework import status
from rest_framework.test import APITestCase

from apps.orders.models import Order, OrderStatus, PaymentMethod
from apps.orders.services import OrderService
from apps.utils.exceptions import BusinessLogicException, DuplicateKey, InvalidAmount

from .models import Customer
from .services import CustomerService

User = get_user_model()


def line(price):
    return [{"item_name": "Flour 10kg", "unit_price": price, "quantity": 1}]


class RecalculateTests(TestCase):
    def setUp(self):
        self.customer = CustomerService.create_customer({"name": "Hamza Store", "phone": "03001112222"})

    def test_outstanding_follows_payments(self):
        first = OrderService.create_order("INV-1", line("100.00"), customer_id=self.customer.id)
        OrderService.create_order("INV-2", line("50.00"), customer_id=self.customer.id)

        customer = CustomerService.recalculate(self.customer.id)
        self.assertEqual(customer.outstanding_amount, Decimal("150.00"))

        OrderService.add_payment(first.id, "100.00", PaymentMethod.CASH)
        customer = CustomerService.recalculate(self.customer.id)
        self.assertEqual(customer.outstanding_amount, Decimal("50.00"))
        self.assertEqual(customer.paid_amount, Decimal("100.00"))

    def test_recalculate_is_idempotent(self):
        OrderService.create_order("INV-3", line("70.00"), customer_id=self.customer.id)

        once = CustomerService.recalculate(self.customer.id)
        twice = CustomerService.recalculate(self.customer.id)
        self.assertEqual(
            (once.outstanding_amount, once.paid_amount),
            (twice.outstanding_amount, twice.paid_amount),
        )

    def test_stale_stored_balance_is_replaced(self):
        OrderService.create_order("INV-4", line("30.00"), customer_id=self.customer.id)
        Customer.objects.filter(id=self.customer.id).update(outstanding_amount=Decimal("999.00"))

        customer = CustomerService.recalculate(self.customer.id)
        self.assertEqual(customer.outstanding_amount, Decimal("30.00"))

    def test_archived_orders_are_excluded(self):
        OrderService.create_order("INV-5", line("30.00"), customer_id=self.customer.id)
        Order.objects.filter(invoice_id="INV-5").update(is_archived=True)

        customer = CustomerService.recalculate(self.customer.id)
        self.assertEqual(customer.outstanding_amount, Decimal("0.00"))


class CustomerServiceTests(TestCase):
    def setUp(self):
        self.customer = CustomerService.create_customer(
            {"name": "Hamza Store", "phone": "03001112222", "cnic": "3520212345671"}
        )

    def test_duplicate_phone(self):
        with self.assertRaises(DuplicateKey) as ctx:
            CustomerService.create_customer({"name": "Other", "phone": "03001112222"})
        self.assertEqual(ctx.exception.field, "phone")

    def test_duplicate_cnic_on_update(self):
        other = CustomerService.create_customer({"name": "Other", "phone": "03009998888"})
        with self.assertRaises(DuplicateKey) as ctx:
            CustomerService.update_customer(other.id, {"cnic": "3520212345671"})
        self.assertEqual(ctx.exception.field, "cnic")

    def test_customers_without_cnic_do_not_collide(self):
        CustomerService.create_customer({"name": "A", "phone": "03000000001", "cnic": ""})
        CustomerService.create_customer({"name": "B", "phone": "03000000002"})
        self.assertEqual(Customer.objects.filter(cnic__isnull=True).count(), 2)

    def test_update_ignores_balances(self):
        customer = CustomerService.update_customer(
            self.customer.id, {"name": "Hamza General Store", "outstanding_amount": Decimal("500.00")}
        )
        self.assertEqual(customer.name, "Hamza General Store")
        self.assertEqual(customer.outstanding_amount, Decimal("0.00"))

    def test_delete_rejected_while_orders_linked(self):
        OrderService.create_order("INV-1", line("10.00"), customer_id=self.customer.id)
        with self.assertRaises(BusinessLogicException) as ctx:
            CustomerService.delete_customer(self.customer.id)
        self.assertEqual(ctx.exception.code, "customer_has_orders")

    def test_search(self):
        CustomerService.create_customer({"name": "Zubair Mart", "phone": "03214445555"})
        self.assertEqual([c.name for c in CustomerService.search("hamza")], ["Hamza Store"])
        self.assertEqual([c.name for c in CustomerService.search("0321")], ["Zubair Mart"])
        self.assertEqual([c.name for c in CustomerService.search("35202")], ["Hamza Store"])
        self.assertEqual([c.name for c in CustomerService.search("35202-1234567-1")], ["Hamza Store"])

    def test_outstanding_and_paid_off_lists(self):
        debtor = CustomerService.create_customer({"name": "Debtor", "phone": "03005556666"})
        OrderService.create_order("INV-2", line("20.00"), customer_id=debtor.id)
        OrderService.create_order("INV-3", line("80.00"), customer_id=self.customer.id)

        self.assertEqual(
            [c.name for c in CustomerService.with_outstanding_balance()],
            ["Hamza Store", "Debtor"],
        )
        self.assertEqual(list(CustomerService.paid_off()), [])


class ApplyPaymentTests(TestCase):
    def setUp(self):
        self.customer = CustomerService.create_customer({"name": "Hamza Store", "phone": "03001112222"})
        self.older = OrderService.create_order("INV-1", line("100.00"), customer_id=self.customer.id)
        self.newer = OrderService.create_order("INV-2", line("50.00"), customer_id=self.customer.id)

    def test_settles_oldest_orders_first(self):
        customer = CustomerService.apply_payment(self.customer.id, "120.00", PaymentMethod.CASH)

        self.older.refresh_from_db()
        self.newer.refresh_from_db()
        self.assertEqual(self.older.status, OrderStatus.FULLY_PAID)
        self.assertEqual(self.newer.paid_amount, Decimal("20.00"))
        self.assertEqual(self.newer.status, OrderStatus.PARTIALLY_PAID)
        self.assertEqual(customer.outstanding_amount, Decimal("30.00"))
        self.assertEqual(customer.paid_amount, Decimal("120.00"))

    def test_rejects_more_than_outstanding(self):
        with self.assertRaises(InvalidAmount):
            CustomerService.apply_payment(self.customer.id, "150.01", PaymentMethod.CASH)

        self.older.refresh_from_db()
        self.assertEqual(self.older.paid_amount, Decimal("0.00"))

    def test_rejects_non_positive_amount(self):
        with self.assertRaises(InvalidAmount):
            CustomerService.apply_payment(self.customer.id, "0", PaymentMethod.CASH)

    def test_cancelled_orders_do_not_take_money(self):
        OrderService.cancel_order(self.newer.id)
        # cancelled outstanding still counts towards the balance but cannot be paid
        with self.assertRaises(InvalidAmount):
            CustomerService.apply_payment(self.customer.id, "150.00", PaymentMethod.CASH)

        self.older.refresh_from_db()
        self.assertEqual(self.older.paid_amount, Decimal("0.00"))

        customer = CustomerService.apply_payment(self.customer.id, "100.00", PaymentMethod.CASH)
        self.assertEqual(customer.outstanding_amount, Decimal("50.00"))
        self.assertEqual(CustomerService.cancelled_outstanding(customer), Decimal("50.00"))

    def test_locks_orders_before_customer(self):
        locked = []
        select_for_update = QuerySet.select_for_update

        def record(queryset, *args, **kwargs):
            locked.append(queryset.model)
            return select_for_update(queryset, *args, **kwargs)

        with mock.patch.object(QuerySet, "select_for_update", record):
            CustomerService.apply_payment(self.customer.id, "120.00", PaymentMethod.CASH)

        self.assertEqual(locked[0], Order)
        self.assertEqual(locked[-1], Customer)
        self.assertNotIn(Order, locked[locked.index(Customer):])


class CustomerAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="cashier", password="testpass123")
        self.client.force_authenticate(self.user)
        self.list_url = reverse("customers-list")

    def create_customer(self, **overrides):
        payload = {"name": "Hamza Store", "phone": "03001112222", "cnic": "35202-1234567-1", **overrides}
        return self.client.post(self.list_url, payload, format="json")

    def test_create_normalizes_cnic(self):
        resp = self.create_customer()
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["cnic"], "3520212345671")
        self.assertEqual(resp.data["outstanding_amount"], "0.00")

    def test_duplicate_phone_payload(self):
        self.create_customer()
        resp = self.create_customer(cnic="")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "duplicate_key")
        self.assertEqual(resp.data["field"], "phone")

    def test_invalid_phone(self):
        resp = self.create_customer(phone="12")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "validation_error")
        self.assertEqual(resp.data["field"], "phone")

    def test_balances_are_read_only(self):
        customer_id = self.create_customer().data["id"]
        resp = self.client.patch(
            reverse("customers-detail", args=[customer_id]),
            {"outstanding_amount": "999.00", "address": "Main Bazaar"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["outstanding_amount"], "0.00")
        self.assertEqual(resp.data["address"], "Main Bazaar")

    def test_search_requires_query(self):
        resp = self.client.get(reverse("customers-search"))
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

        self.create_customer()
        resp = self.client.get(reverse("customers-search"), {"query": "hamza"})
        self.assertEqual(resp.data["count"], 1)

    def test_orders_payment_and_recalculate(self):
        customer_id = self.create_customer().data["id"]
        OrderService.create_order("INV-1", line("100.00"), customer_id=customer_id)

        resp = self.client.get(reverse("customers-orders", args=[customer_id]))
        self.assertEqual(resp.data["count"], 1)

        resp = self.client.get(reverse("customers-outstanding"))
        self.assertEqual(resp.data["results"][0]["outstanding_amount"], "100.00")

        resp = self.client.post(
            reverse("customers-payment", args=[customer_id]),
            {"amount": "100.00", "method": "CASH"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["outstanding_amount"], "0.00")

        resp = self.client.get(reverse("customers-paid-off"))
        self.assertEqual(resp.data["count"], 1)

        resp = self.client.post(reverse("customers-recalculate", args=[customer_id]))
        self.assertEqual(resp.data["paid_amount"], "100.00")

    def test_cancelled_outstanding_in_payload(self):
        customer_id = self.create_customer().data["id"]
        order = OrderService.create_order("INV-1", line("100.00"), customer_id=customer_id)
        OrderService.cancel_order(order.id)

        resp = self.client.get(reverse("customers-detail", args=[customer_id]))
        self.assertEqual(resp.data["outstanding_amount"], "100.00")
        self.assertEqual(resp.data["cancelled_outstanding"], "100.00")

    def test_delete(self):
        customer_id = self.create_customer().data["id"]
        resp = self.client.delete(reverse("customers-detail", args=[customer_id]))
        self.assertEqual(resp.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Customer.objects.exists())
