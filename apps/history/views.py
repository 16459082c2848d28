# apps/history/views.py
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.utils.permissions import IsStaffUser

from .models import BusinessHistoryYear, HistoryFailure
from .serializers import BusinessHistoryYearSerializer, HistoryFailureSerializer
from . import services


class HistoryListView(generics.ListCreateAPIView):
    """
    GET  /api/v1/history/  every recorded year with its months and days
    POST /api/v1/history/  manual upsert (staff only)
    """
    serializer_class = BusinessHistoryYearSerializer
    pagination_class = None

    def get_permissions(self):
        if self.request.method == "POST":
            return [permissions.IsAuthenticated(), IsStaffUser()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        return BusinessHistoryYear.objects.prefetch_related("months__days").order_by("year")

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        created = services.upsert_history(serializer.validated_data)
        year = services.get_year(serializer.validated_data["year"])
        return Response(
            BusinessHistoryYearSerializer(year).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class HistoryYearView(APIView):
    """
    GET    /api/v1/history/{year}/
    DELETE /api/v1/history/{year}/  (staff only)
    """

    def get_permissions(self):
        if self.request.method == "DELETE":
            return [permissions.IsAuthenticated(), IsStaffUser()]
        return [permissions.IsAuthenticated()]

    def get(self, request, year):
        return Response(BusinessHistoryYearSerializer(services.get_year(year)).data)

    def delete(self, request, year):
        services.delete_year(year)
        return Response(status=status.HTTP_204_NO_CONTENT)


class HistoryFailureListView(generics.ListAPIView):
    permission_classes = [permissions.IsAuthenticated, IsStaffUser]
    serializer_class = HistoryFailureSerializer

    def get_queryset(self):
        qs = HistoryFailure.objects.all()
        if self.request.query_params.get("include_resolved") != "true":
            qs = qs.filter(resolved_at__isnull=True)
        return qs
