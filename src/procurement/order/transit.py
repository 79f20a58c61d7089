"""Order dispatch: command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from procurement.domain import procurement
from procurement.order.order import Order


@procurement.command(part_of="Order")
class BeginTransit:
    """Supplier dispatches the order, or marks a pickup order ready for collection."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)


@procurement.command_handler(part_of=Order)
class TransitHandler:
    @handle(BeginTransit)
    def begin_transit(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.begin_transit(actor_role=command.actor_role, actor_id=command.actor_id)
        repo.add(order)
        return order.summary()
