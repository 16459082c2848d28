from django.contrib import admin

from .models import Order, OrderItem, OrderPayment, OrderTimeline


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("item", "item_name", "price_type", "unit_price", "discount_amount", "quantity", "line_total")

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderPaymentInline(admin.TabularInline):
    model = OrderPayment
    extra = 0
    readonly_fields = ("amount", "method", "notes", "paid_at", "recorded_by")

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderTimelineInline(admin.TabularInline):
    model = OrderTimeline
    extra = 0
    readonly_fields = ("timestamp", "status", "note", "created_by")

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Money fields are read-only here; payments and edits go through the API
    so customer balances stay in step.
    """
    list_display = (
        "invoice_id",
        "customer",
        "walk_in_name",
        "status",
        "total_price",
        "paid_amount",
        "outstanding_amount",
        "is_archived",
        "created_at",
    )
    list_filter = ("status", "is_archived", "is_wholesale", "created_at")
    search_fields = ("invoice_id", "customer__name", "customer__phone", "walk_in_name", "walk_in_phone")
    inlines = [OrderItemInline, OrderPaymentInline, OrderTimelineInline]
    readonly_fields = (
        "id",
        "invoice_id",
        "customer",
        "subtotal",
        "total_discount",
        "order_discount",
        "total_price",
        "paid_amount",
        "outstanding_amount",
        "status",
        "is_archived",
        "archived_at",
        "created_at",
        "updated_at",
    )
    fieldsets = (
        ("Order", {"fields": ("id", "invoice_id", "customer", "status", "notes")}),
        ("Walk-in", {"fields": ("walk_in_name", "walk_in_cnic", "walk_in_phone")}),
        ("Amounts", {"fields": (
            "subtotal", "total_discount", "order_discount", "total_price",
            "paid_amount", "outstanding_amount", "payment_method", "is_wholesale",
        )}),
        ("Lifecycle", {"fields": ("is_archived", "archived_at", "created_at", "updated_at")}),
    )
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False
