from django.contrib import admin

from .models import BusinessHistoryYear, BusinessHistoryMonth, BusinessHistoryDay, HistoryFailure


class BusinessHistoryDayInline(admin.TabularInline):
    model = BusinessHistoryDay
    extra = 0


class BusinessHistoryMonthInline(admin.TabularInline):
    model = BusinessHistoryMonth
    extra = 0
    show_change_link = True


@admin.register(BusinessHistoryYear)
class BusinessHistoryYearAdmin(admin.ModelAdmin):
    list_display = ("year",)
    inlines = [BusinessHistoryMonthInline]


@admin.register(BusinessHistoryMonth)
class BusinessHistoryMonthAdmin(admin.ModelAdmin):
    list_display = ("history_year", "month")
    list_filter = ("history_year",)
    inlines = [BusinessHistoryDayInline]


@admin.register(HistoryFailure)
class HistoryFailureAdmin(admin.ModelAdmin):
    list_display = ("invoice_id", "occurred_at", "profit_delta", "attempts", "created_at", "resolved_at")
    list_filter = ("resolved_at",)
    search_fields = ("invoice_id", "order_id")
    readonly_fields = ("created_at",)
