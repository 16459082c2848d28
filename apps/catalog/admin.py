# apps/catalog/admin.py
from django.contrib import admin
from .models import Category, Item


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ("sku_code", "name", "category", "retail_price", "wholesale_price", "is_active")
    search_fields = ("sku_code", "name")
    list_filter = ("category", "is_active")
    list_editable = ("retail_price", "wholesale_price", "is_active")
    readonly_fields = ("created_at", "updated_at")
