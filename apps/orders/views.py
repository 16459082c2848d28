# apps/orders/views.py
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, mixins, permissions, status, viewsets
from rest_framework.response import Response

from apps.utils.pagination import StandardResultsSetPagination
from apps.utils.permissions import IsStaffUser

from .filters import OrderFilter
from .models import Order
from .serializers import (
    ArchiveQuerySerializer,
    OrderCreateSerializer,
    OrderDetailSerializer,
    OrderSerializer,
    OrderUpdateSerializer,
    PaymentInputSerializer,
)
from .services import OrderService

ADMIN_ACTIONS = {"destroy", "archive"}


class OrderViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Orders with their items, payments and timeline.

    Every write goes through OrderService so the customer balance is
    recomputed in the same transaction.
    """
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = OrderFilter
    search_fields = ["invoice_id", "customer__name", "walk_in_name", "walk_in_phone"]
    ordering_fields = ["created_at", "total_price", "outstanding_amount"]

    def get_permissions(self):
        if self.action in ADMIN_ACTIONS:
            return [permissions.IsAuthenticated(), IsStaffUser()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        qs = Order.objects.select_related("customer").prefetch_related("items", "payments")
        if self.action == "list" and self.request.query_params.get("include_archived") != "true":
            qs = qs.filter(is_archived=False)
        return qs

    def get_serializer_class(self):
        if self.action == "list":
            return OrderSerializer
        return OrderDetailSerializer

    def _detail(self, order, status_code=status.HTTP_200_OK):
        order = self.get_queryset().prefetch_related("timeline").get(id=order.id)
        return Response(OrderDetailSerializer(order).data, status=status_code)

    def create(self, request):
        """
        POST /api/v1/orders/
        """
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService.create_order(
            invoice_id=data["invoice_id"],
            items=data["items"],
            customer_id=data.get("customer_id"),
            walk_in=data.get("walk_in"),
            order_discount=data["order_discount"],
            payment_method=data["payment_method"],
            is_wholesale=data["is_wholesale"],
            notes=data["notes"],
            initial_payment=data.get("initial_payment"),
            user=request.user,
        )
        return self._detail(order, status.HTTP_201_CREATED)

    def update(self, request, pk=None, partial=False):
        self.get_object()
        serializer = OrderUpdateSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService.update_items(
            pk,
            items=data.get("items"),
            order_discount=data.get("order_discount"),
            user=request.user,
        )
        return self._detail(order)

    def partial_update(self, request, pk=None):
        return self.update(request, pk, partial=True)

    def payment(self, request, pk=None):
        """
        POST /api/v1/orders/{id}/payment/
        """
        serializer = PaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService.add_payment(
            pk, data["amount"], data["method"], notes=data["notes"], user=request.user
        )
        return self._detail(order)

    def cancel(self, request, pk=None):
        order = OrderService.cancel_order(pk, reason=request.data.get("reason", ""), user=request.user)
        return self._detail(order)

    def destroy(self, request, pk=None):
        OrderService.delete_order(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def archive(self, request):
        """
        DELETE /api/v1/orders/?startDate=YYYY-MM-DD&endDate=YYYY-MM-DD
        DELETE /api/v1/orders/?confirmDeleteAll=true

        Orders are archived, not removed.
        """
        serializer = ArchiveQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        archived = OrderService.archive_orders(
            start_date=data.get("startDate"),
            end_date=data.get("endDate"),
            confirm_all=data["confirmDeleteAll"],
            user=request.user,
        )
        return Response({"archived_count": archived})
