"""Delivery window negotiation: commands and handler.

A party proposes a window; the counterparty accepts it, rejects it, or
counter-proposes its own. Accepting the first proposal confirms the order.
"""

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from procurement.domain import procurement
from procurement.order.order import Order


@procurement.command(part_of="Order")
class ProposeWindow:
    """Open a negotiation round with a proposed delivery or pickup window."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    window_start = DateTime(required=True)
    window_end = DateTime(required=True)


@procurement.command(part_of="Order")
class CounterProposeWindow:
    """Answer the pending proposal with a different window."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    window_start = DateTime(required=True)
    window_end = DateTime(required=True)


@procurement.command(part_of="Order")
class AcceptWindow:
    """Accept the pending proposal as the promised window."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)


@procurement.command(part_of="Order")
class RejectWindow:
    """Reject the pending proposal without countering."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)


@procurement.command_handler(part_of=Order)
class NegotiationHandler:
    @handle(ProposeWindow)
    def propose_window(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.propose_window(
            actor_role=command.actor_role,
            actor_id=command.actor_id,
            start=command.window_start,
            end=command.window_end,
        )
        repo.add(order)
        return order.summary()

    @handle(CounterProposeWindow)
    def counter_propose_window(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.counter_propose_window(
            actor_role=command.actor_role,
            actor_id=command.actor_id,
            start=command.window_start,
            end=command.window_end,
        )
        repo.add(order)
        return order.summary()

    @handle(AcceptWindow)
    def accept_window(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.accept_window(actor_role=command.actor_role, actor_id=command.actor_id)
        repo.add(order)
        return order.summary()

    @handle(RejectWindow)
    def reject_window(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.reject_window(actor_role=command.actor_role, actor_id=command.actor_id)
        repo.add(order)
        return order.summary()
