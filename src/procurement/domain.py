"""Procurement bounded context: Order Fulfillment for the BuildApp marketplace.

Governs how a placed order between a buyer and a supplier moves through
delivery-window negotiation, physical handover and buyer confirmation,
including the automatic completion that fires when the buyer does not
respond before the confirmation deadline. Uses CQRS: the Order aggregate is
persisted as current state, and durable ConfirmationTimer records drive the
deadline scanner.
"""

from protean.domain import Domain

from procurement.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
procurement = Domain(name="procurement")
