"""Order cancellation: command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from procurement.domain import procurement
from procurement.order.order import Order


@procurement.command(part_of="Order")
class CancelOrder:
    """Cancel an order that has not been handed over yet."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    reason = String(required=True, max_length=500)


@procurement.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(
            actor_role=command.actor_role,
            actor_id=command.actor_id,
            reason=command.reason,
        )
        repo.add(order)
        return order.summary()
