from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.orders.serializers import OrderSerializer, PaymentInputSerializer
from apps.utils.exceptions import InvalidInput
from apps.utils.pagination import StandardResultsSetPagination

from .models import Customer
from .serializers import CustomerSerializer
from .services import CustomerService


class CustomerViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Customer records and balances.
    /api/v1/customers/
    """
    serializer_class = CustomerSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    queryset = Customer.objects.all()

    def create(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customer = CustomerService.create_customer(serializer.validated_data)
        return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None, partial=False):
        customer = self.get_object()
        serializer = self.get_serializer(customer, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        customer = CustomerService.update_customer(customer.id, serializer.validated_data)
        return Response(CustomerSerializer(customer).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk, partial=True)

    def destroy(self, request, pk=None):
        CustomerService.delete_customer(self.get_object().id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _paginated(self, queryset, serializer_class=CustomerSerializer):
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(serializer_class(page, many=True).data)
        return Response(serializer_class(queryset, many=True).data)

    @action(detail=False, methods=["get"])
    def search(self, request):
        """
        GET /api/v1/customers/search/?query=
        Matches name, CNIC or phone.
        """
        query = request.query_params.get("query", "").strip()
        if not query:
            raise InvalidInput("A search query is required.", field="query")
        return self._paginated(CustomerService.search(query))

    @action(detail=False, methods=["get"])
    def outstanding(self, request):
        return self._paginated(CustomerService.with_outstanding_balance())

    @action(detail=False, methods=["get"], url_path="paid-off")
    def paid_off(self, request):
        return self._paginated(CustomerService.paid_off())

    @action(detail=True, methods=["get"])
    def orders(self, request, pk=None):
        customer = self.get_object()
        qs = customer.orders.prefetch_related("items", "payments")
        if request.query_params.get("include_archived") != "true":
            qs = qs.filter(is_archived=False)
        return self._paginated(qs, OrderSerializer)

    @action(detail=True, methods=["post"])
    def payment(self, request, pk=None):
        """
        POST /api/v1/customers/{id}/payment/
        Settles the amount against the customer's open orders, oldest first.
        """
        customer = self.get_object()
        serializer = PaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = CustomerService.apply_payment(
            customer.id, data["amount"], data["method"], notes=data["notes"], recorded_by=request.user
        )
        return Response(CustomerSerializer(customer).data)

    @action(detail=True, methods=["post"])
    def recalculate(self, request, pk=None):
        customer = CustomerService.recalculate(self.get_object().id)
        return Response(CustomerSerializer(customer).data)
