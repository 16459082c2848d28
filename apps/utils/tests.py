# apps/utils/tests.py
import json
import logging

from django.core.cache import cache
from django.http import Http404, JsonResponse
from django.test import RequestFactory, SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework.exceptions import ValidationError

from .exceptions import DuplicateInvoice, EntityNotFound, custom_exception_handler
from .logging import JSONFormatter
from .middleware import IdempotencyMiddleware
from .validators import validate_cnic, validate_phone


class ValidatorTests(SimpleTestCase):
    def test_phone_validator(self):
        self.assertEqual(validate_phone("+923001234567"), "+923001234567")
        with self.assertRaises(ValidationError):
            validate_phone("123")

    def test_cnic_validator_strips_dashes(self):
        self.assertEqual(validate_cnic("35202-1234567-1"), "3520212345671")
        self.assertEqual(validate_cnic("3520212345671"), "3520212345671")
        with self.assertRaises(ValidationError):
            validate_cnic("35202-123")


class ExceptionHandlerTests(SimpleTestCase):
    def test_business_error_payload(self):
        resp = custom_exception_handler(DuplicateInvoice("INV-1"), {})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], "duplicate_invoice")
        self.assertEqual(resp.data["field"], "invoice_id")
        self.assertEqual(resp.data["value"], "INV-1")

    def test_not_found_status(self):
        resp = custom_exception_handler(EntityNotFound("Order x not found."), {})
        self.assertEqual(resp.status_code, 404)
        resp = custom_exception_handler(Http404(), {})
        self.assertEqual(resp.data, {"error": "Not found.", "code": "not_found"})

    def test_validation_error_is_flattened(self):
        exc = ValidationError({"items": [{"quantity": ["A valid integer is required."]}]})
        resp = custom_exception_handler(exc, {})
        self.assertEqual(resp.data["code"], "validation_error")
        self.assertEqual(resp.data["field"], "quantity")
        self.assertEqual(resp.data["error"], "A valid integer is required.")

    def test_unexpected_error_is_500(self):
        with self.assertLogs("apps.utils.exceptions", level="ERROR"):
            resp = custom_exception_handler(RuntimeError("boom"), {})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.data["code"], "server_error")


class JSONFormatterTests(SimpleTestCase):
    def test_context_fields_and_redaction(self):
        record = logging.LogRecord("apps.orders", logging.INFO, __file__, 1, {"cnic": "3520212345671", "name": "Ali"}, None, None)
        record.invoice_id = "INV-1"

        out = json.loads(JSONFormatter().format(record))
        self.assertEqual(out["invoice_id"], "INV-1")
        self.assertIn("***REDACTED***", out["msg"])
        self.assertNotIn("3520212345671", out["msg"])


class IdempotencyMiddlewareTests(TestCase):
    def setUp(self):
        cache.clear()
        self.factory = RequestFactory()
        self.calls = 0

        def view(request):
            self.calls += 1
            return JsonResponse({"paid": self.calls})

        self.middleware = IdempotencyMiddleware(view)

    def post(self, body, key="key-1"):
        request = self.factory.post("/api/v1/orders/x/payment/", body, content_type="application/json",
                                    HTTP_IDEMPOTENCY_KEY=key)
        return self.middleware(request)

    def test_replays_stored_response(self):
        first = self.post({"amount": "10.00"})
        second = self.post({"amount": "10.00"})

        self.assertEqual(json.loads(first.content), {"paid": 1})
        self.assertEqual(json.loads(second.content), {"paid": 1})
        self.assertEqual(self.calls, 1)

    def test_different_payload_is_rejected(self):
        self.post({"amount": "10.00"})
        resp = self.post({"amount": "20.00"})
        self.assertEqual(resp.status_code, 422)

    def test_in_flight_duplicate_conflicts(self):
        cache.add("idemp_lock:key-2", "other-request", timeout=60)
        resp = self.post({"amount": "10.00"}, key="key-2")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(self.calls, 0)

    def test_requests_without_key_pass_through(self):
        request = self.factory.post("/api/v1/orders/", {}, content_type="application/json")
        self.middleware(request)
        self.middleware(request)
        self.assertEqual(self.calls, 2)


class HealthAndInfoTests(TestCase):
    def test_health(self):
        resp = self.client.get(reverse("health-check"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["components"]["db"], "ok")

    def test_info_is_public(self):
        resp = self.client.get(reverse("server-info"))
        self.assertEqual(resp.status_code, 200)
        self.assertIn("version", resp.json())
