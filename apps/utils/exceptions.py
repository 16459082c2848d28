from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from rest_framework.exceptions import ValidationError as DRFValidationError
from django.http import Http404
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Order is already fully paid').
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "business_error"

    def __init__(self, message, code=None, field=None, value=None):
        self.message = message
        self.code = code or self.default_code
        self.field = field
        self.value = value
        super().__init__(message)

    def as_payload(self):
        payload = {"error": self.message, "code": self.code}
        if self.field:
            payload["field"] = self.field
        if self.value is not None:
            payload["value"] = str(self.value)
        return payload


class InvalidInput(BusinessLogicException):
    default_code = "invalid_input"


class DuplicateKey(BusinessLogicException):
    default_code = "duplicate_key"

    def __init__(self, field, value, message=None):
        super().__init__(
            message or f"A record with {field} '{value}' already exists.",
            field=field,
            value=value,
        )


class DuplicateInvoice(DuplicateKey):
    default_code = "duplicate_invoice"

    def __init__(self, invoice_id):
        super().__init__(
            "invoice_id",
            invoice_id,
            message=f"An order with invoice id '{invoice_id}' already exists.",
        )


class EmptyOrder(BusinessLogicException):
    default_code = "empty_order"


class InvalidAmount(BusinessLogicException):
    default_code = "invalid_amount"


class OrderClosed(BusinessLogicException):
    default_code = "order_closed"


class EntityNotFound(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class TransientPersistenceFailure(Exception):
    """
    Retryable storage failure. Only the history retry loop sees this.
    """


def _first_validation_message(detail, field=None):
    if isinstance(detail, dict):
        for key, value in detail.items():
            name = field if key == "non_field_errors" else key
            return _first_validation_message(value, name)
    if isinstance(detail, list) and detail:
        return _first_validation_message(detail[0], field)
    return field, str(detail)


def custom_exception_handler(exc, context):
    # Handle custom BusinessLogicException
    if isinstance(exc, BusinessLogicException):
        return Response(exc.as_payload(), status=exc.status_code)

    # Flatten serializer errors into one readable message
    if isinstance(exc, DRFValidationError):
        field, message = _first_validation_message(exc.detail)
        payload = {"error": message, "code": "validation_error"}
        if field:
            payload["field"] = field
        return Response(payload, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, Http404):
        return Response(
            {"error": "Not found.", "code": "not_found"},
            status=status.HTTP_404_NOT_FOUND,
        )

    # Call REST framework's default exception handler next
    response = exception_handler(exc, context)

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    detail = response.data.get("detail") if isinstance(response.data, dict) else None
    if detail is not None:
        response.data = {"error": str(detail), "code": getattr(detail, "code", "error")}
    return response
