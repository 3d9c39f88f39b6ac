from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from schoolshop.db.repositories.products import ProductsRepository
from schoolshop.errors import NotFoundError

_registry_lock = threading.Lock()
# product_id -> [lock, number of holders and waiters]
_product_locks: dict[str, list] = {}


def _acquire_entry(product_id: str) -> threading.Lock:
    with _registry_lock:
        entry = _product_locks.get(product_id)
        if entry is None:
            entry = [threading.Lock(), 0]
            _product_locks[product_id] = entry
        entry[1] += 1
        return entry[0]


def _release_entry(product_id: str) -> None:
    with _registry_lock:
        entry = _product_locks.get(product_id)
        if entry is None:
            return
        entry[1] -= 1
        if entry[1] <= 0:
            del _product_locks[product_id]


@contextmanager
def product_asset_lock(session: Session, product_id: str) -> Iterator[None]:
    """Serialize asset mutations on one product.

    The in-process lock covers workers of this process; the row lock on the
    product covers other processes on databases that support it. The registry
    entry is dropped once nobody holds or waits for it.
    """
    lock = _acquire_entry(product_id)
    try:
        with lock:
            product = ProductsRepository(session).get_for_update(product_id=product_id)
            if product is None:
                raise NotFoundError(message="Product not found")
            yield
    finally:
        _release_entry(product_id)
