"""Per-order command serialisation.

Request handlers and the deadline scanner dispatch order commands through
``dispatch``. Commands for the same order run one at a time inside this
process, so the read-modify-write of each command sees the previous
command's result. Across processes the aggregate version check still
applies; a stale write surfaces as an ``OrderConflictError``.

Locks are held only for the duration of one command, never across a
negotiation or a confirmation deadline, and nothing awaits while holding one.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from procurement.errors import OrderConflictError
from procurement.utils.logging import log_context

logger = structlog.get_logger(__name__)

_registry_lock = threading.Lock()
_order_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)


def order_lock(order_id: str) -> threading.Lock:
    with _registry_lock:
        return _order_locks[str(order_id)]


@contextmanager
def serialized(order_id: str):
    """Run the enclosed block exclusively for ``order_id``."""
    with order_lock(order_id), log_context(order_id=str(order_id)):
        try:
            yield
        except ExpectedVersionError as exc:
            logger.warning("Stale write rejected", order_id=str(order_id), error=str(exc))
            raise OrderConflictError(
                "Order was modified concurrently; reload it and retry",
                order_id=str(order_id),
            ) from exc


def dispatch(command):
    """Process an order command synchronously under the order's lock."""
    with serialized(command.order_id):
        return current_domain.process(command, asynchronous=False)


def reset_locks():
    """Forget all per-order locks (useful for testing)."""
    with _registry_lock:
        _order_locks.clear()
