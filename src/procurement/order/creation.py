"""Order creation: command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from procurement.domain import procurement
from procurement.order.order import Destination, Order


@procurement.command(part_of="Order")
class CreateOrder:
    """Place an order between a buyer and a supplier."""

    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    order_type = String(max_length=50, default="material")
    delivery_mode = String(max_length=50, default="delivery")
    items = Text(required=True)  # JSON list of line item dicts
    total_amount = Float(required=True)
    grand_total = Float(required=True)
    delivery_fee = Float(default=0.0)
    tax_amount = Float(default=0.0)
    currency = String(max_length=3, default="GEL")
    address = String(max_length=500)
    latitude = Float()
    longitude = Float()
    buyer_notes = Text()


@procurement.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items

        destination = None
        if command.address:
            destination = Destination(
                address=command.address,
                latitude=command.latitude,
                longitude=command.longitude,
            )
        elif command.latitude is not None or command.longitude is not None:
            raise ValidationError({"address": ["An address is required when coordinates are given"]})

        order = Order.create(
            actor_role=command.actor_role,
            actor_id=command.actor_id,
            buyer_id=command.buyer_id,
            supplier_id=command.supplier_id,
            items_data=items_data,
            total_amount=command.total_amount,
            grand_total=command.grand_total,
            order_type=command.order_type,
            delivery_mode=command.delivery_mode,
            destination=destination,
            delivery_fee=command.delivery_fee,
            tax_amount=command.tax_amount,
            currency=command.currency,
            buyer_notes=command.buyer_notes,
        )
        current_domain.repository_for(Order).add(order)
        return order.summary()
