from django.contrib import admin

from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "cnic", "paid_amount", "outstanding_amount", "created_at")
    search_fields = ("name", "phone", "cnic")
    # Balances are recomputed from orders, never typed in
    readonly_fields = ("paid_amount", "outstanding_amount", "created_at", "updated_at")
