"""
Checkout

Turns a user's cart into an order. The user's cart lock is held for the
whole operation: read cart, price each entry from the catalog, write the
order, then clear the cart. The cart is only cleared after the order write
has committed; if anything fails before that the cart is left as it was.

Prices are whatever the catalog returns at lookup time. Entries whose
product no longer exists are left out of the order.
"""

import logging

from cart import CartRegistry
from catalog import Catalog
from errors import EmptyCartError
from orders import OrderStore
from schemas import OrderOut

logger = logging.getLogger(__name__)


def checkout(user_id: str, carts: CartRegistry, catalog: Catalog, orders: OrderStore) -> OrderOut:
    with carts.locked(user_id):
        entries = carts.get(user_id)
        if not entries:
            raise EmptyCartError("Empty cart")

        total = 0.0
        items = []
        dropped = []
        for entry in entries:
            product = catalog.get(entry["product_id"])
            if product is None:
                dropped.append(entry["product_id"])
                continue
            price_at_purchase = float(product["price"])
            total += price_at_purchase * entry["quantity"]
            items.append({
                "product_id": entry["product_id"],
                "quantity": entry["quantity"],
                "price_at_purchase": price_at_purchase,
            })

        if dropped:
            logger.warning("Checkout for user %s dropped unknown products %s", user_id, dropped)

        order = orders.create(user_id, total, items)
        carts.clear(user_id)

    logger.info("Order %s placed by user %s: %d items, total %.2f", order.id, user_id, len(order.items), order.total)
    return order
