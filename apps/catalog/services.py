from dataclasses import dataclass
from decimal import Decimal

from apps.utils.exceptions import InvalidInput

from .models import Item

PRICE_TYPE_RETAIL = "RETAIL"
PRICE_TYPE_WHOLESALE = "WHOLESALE"


@dataclass(frozen=True)
class ItemQuote:
    item_id: object
    name: str
    price: Decimal


class CatalogService:
    """
    Read-only price/name lookups used when an order is captured.
    """

    @staticmethod
    def quote_items(item_ids, price_type=PRICE_TYPE_RETAIL) -> dict:
        items = Item.objects.in_bulk(list(set(item_ids)))
        quotes = {}
        for item_id in item_ids:
            item = items.get(item_id)
            if item is None:
                raise InvalidInput(f"Item {item_id} does not exist.", field="item", value=item_id)
            if not item.is_active:
                raise InvalidInput(f"Item {item.name} is not available.", field="item", value=item_id)
            price = item.retail_price
            if price_type == PRICE_TYPE_WHOLESALE and item.wholesale_price is not None:
                price = item.wholesale_price
            quotes[item_id] = ItemQuote(item_id=item.id, name=item.name, price=price)
        return quotes
