"""
Cart registry

In-memory carts keyed by user id. Carts do not survive a restart and are
not shared between processes.

Every mutation for a user runs under that user's re-entrant lock, and
checkout holds the same lock from reading the cart until clearing it, so a
concurrent add or remove cannot slip in between.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, List

logger = logging.getLogger(__name__)


class CartRegistry:
    def __init__(self):
        # user_id -> {product_id: quantity}, insertion ordered
        self._carts: Dict[str, Dict[str, int]] = {}
        # user_id -> [RLock, number of threads holding or waiting for it]
        self._locks = {}
        self._guard = threading.Lock()

    @contextmanager
    def locked(self, user_id: str):
        with self._guard:
            slot = self._locks.get(user_id)
            if slot is None:
                slot = self._locks[user_id] = [threading.RLock(), 0]
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._guard:
                slot[1] -= 1
                # Nobody holds or waits on the lock, so the cart can be inspected here
                if slot[1] == 0 and not self._carts.get(user_id):
                    self._carts.pop(user_id, None)
                    del self._locks[user_id]

    def _entries(self, user_id: str) -> List[dict]:
        cart = self._carts.get(user_id, {})
        return [{"product_id": pid, "quantity": qty} for pid, qty in cart.items()]

    def get(self, user_id: str) -> List[dict]:
        with self.locked(user_id):
            return self._entries(user_id)

    def add(self, user_id: str, product_id: str, quantity: int) -> List[dict]:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        with self.locked(user_id):
            cart = self._carts.setdefault(user_id, {})
            cart[product_id] = cart.get(product_id, 0) + quantity
            logger.debug("Cart %s: %s -> %d", user_id, product_id, cart[product_id])
            return self._entries(user_id)

    def remove(self, user_id: str, product_id: str) -> List[dict]:
        with self.locked(user_id):
            cart = self._carts.get(user_id)
            if cart is not None:
                cart.pop(product_id, None)
            return self._entries(user_id)

    def clear(self, user_id: str) -> None:
        with self.locked(user_id):
            self._carts.pop(user_id, None)


carts = CartRegistry()


def get_cart_registry() -> CartRegistry:
    return carts
