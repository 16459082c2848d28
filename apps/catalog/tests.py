# apps/catalog/tests.py
from decimal import Decimal

from django.test import TestCase

from apps.utils.exceptions import InvalidInput

from .models import Category, Item
from .services import CatalogService, PRICE_TYPE_RETAIL, PRICE_TYPE_WHOLESALE


class CategoryTests(TestCase):
    def test_slug_is_unique(self):
        first = Category.objects.create(name="Dry Goods")
        second = Category(name="Dry-Goods")
        second.save()

        self.assertEqual(first.slug, "dry-goods")
        self.assertEqual(second.slug, "dry-goods-1")


class QuoteItemsTests(TestCase):
    def setUp(self):
        self.rice = Item.objects.create(
            sku_code="RICE-5", name="Rice 5kg", retail_price=Decimal("50.00"), wholesale_price=Decimal("45.00")
        )
        self.salt = Item.objects.create(sku_code="SALT-1", name="Salt 1kg", retail_price=Decimal("3.00"))

    def test_retail_and_wholesale_prices(self):
        retail = CatalogService.quote_items([self.rice.id], price_type=PRICE_TYPE_RETAIL)
        wholesale = CatalogService.quote_items([self.rice.id, self.salt.id], price_type=PRICE_TYPE_WHOLESALE)

        self.assertEqual(retail[self.rice.id].price, Decimal("50.00"))
        self.assertEqual(wholesale[self.rice.id].price, Decimal("45.00"))
        # no wholesale price falls back to retail
        self.assertEqual(wholesale[self.salt.id].price, Decimal("3.00"))

    def test_inactive_item_is_rejected(self):
        self.salt.is_active = False
        self.salt.save()
        with self.assertRaises(InvalidInput):
            CatalogService.quote_items([self.salt.id])
