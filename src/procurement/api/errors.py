"""HTTP mapping for procurement errors.

Protean's own exceptions keep the mapping from
``protean.integrations.fastapi``. The order-specific rejections get their own
status codes, and a conflict carries the current order summary so the
caller can resync instead of retrying blindly.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.integrations.fastapi import register_exception_handlers
from protean.utils.globals import current_domain

from procurement.errors import OrderAuthorizationError, OrderConflictError
from procurement.order.order import Order

logger = structlog.get_logger(__name__)


def _current_summary(order_id: str | None) -> dict | None:
    if not order_id:
        return None
    try:
        return current_domain.repository_for(Order).get(order_id).summary()
    except ObjectNotFoundError:
        return None


def register_order_exception_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)

    @app.exception_handler(OrderAuthorizationError)
    async def authorization_error_handler(request: Request, exc: OrderAuthorizationError):
        logger.info("Order operation forbidden", path=request.url.path, reason=exc.reason)
        return JSONResponse(status_code=403, content={"error": {"authorization": [exc.reason]}})

    @app.exception_handler(OrderConflictError)
    async def conflict_error_handler(request: Request, exc: OrderConflictError):
        logger.info("Order operation conflicted", path=request.url.path, reason=exc.reason)
        return JSONResponse(
            status_code=409,
            content=jsonable_encoder({"error": {"conflict": [exc.reason]}, "order": _current_summary(exc.order_id)}),
        )

    @app.exception_handler(ExpectedVersionError)
    async def stale_write_handler(request: Request, exc: ExpectedVersionError):
        logger.warning("Stale write rejected", path=request.url.path, error=str(exc))
        order_id = request.path_params.get("order_id")
        return JSONResponse(
            status_code=409,
            content=jsonable_encoder(
                {
                    "error": {"conflict": ["Order was modified concurrently; reload it and retry"]},
                    "order": _current_summary(order_id),
                }
            ),
        )
