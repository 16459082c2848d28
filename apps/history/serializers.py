from rest_framework import serializers

from .models import BusinessHistoryYear, BusinessHistoryMonth, BusinessHistoryDay, HistoryFailure


class BusinessHistoryDaySerializer(serializers.ModelSerializer):
    day = serializers.IntegerField(min_value=1, max_value=31)
    total_profit = serializers.DecimalField(max_digits=16, decimal_places=2)
    total_orders = serializers.IntegerField(min_value=0)

    class Meta:
        model = BusinessHistoryDay
        fields = ["day", "total_profit", "total_orders"]


class BusinessHistoryMonthSerializer(serializers.ModelSerializer):
    month = serializers.IntegerField(min_value=1, max_value=12)
    days = BusinessHistoryDaySerializer(many=True)

    class Meta:
        model = BusinessHistoryMonth
        fields = ["month", "days"]


class BusinessHistoryYearSerializer(serializers.ModelSerializer):
    """
    Nested year -> months -> days. Also the input shape for manual upserts.
    """
    year = serializers.IntegerField(min_value=1970, max_value=9999)
    months = BusinessHistoryMonthSerializer(many=True, required=False)

    class Meta:
        model = BusinessHistoryYear
        fields = ["year", "months"]
        # Uniqueness is handled by the upsert itself
        validators = []

    def validate_months(self, value):
        seen = set()
        for month in value:
            if month["month"] in seen:
                raise serializers.ValidationError(f"Month {month['month']} is listed twice.")
            seen.add(month["month"])
            days = [d["day"] for d in month.get("days", [])]
            if len(days) != len(set(days)):
                raise serializers.ValidationError(f"Month {month['month']} lists a day twice.")
        return value


class HistoryFailureSerializer(serializers.ModelSerializer):
    class Meta:
        model = HistoryFailure
        fields = [
            "id", "order_id", "invoice_id", "occurred_at", "profit_delta",
            "order_count_delta", "error", "attempts", "created_at", "resolved_at",
        ]
        read_only_fields = fields
