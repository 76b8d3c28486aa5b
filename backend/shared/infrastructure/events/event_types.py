"""
Event Type Constants.

Names of the events pushed to real-time clients. Values are the wire names
kitchen displays and dashboards subscribe to.
"""

from shared.config.settings import settings

# =============================================================================
# Order events
# =============================================================================

ORDER_CREATED = "OrderCreated"
ORDER_STATUS_CHANGED = "OrderStatusChanged"
TABLE_ORDER_CREATED = "TableOrderCreated"

# =============================================================================
# Kitchen ticket events (station topics)
# =============================================================================

NEW_KITCHEN_TICKET = "NewKitchenTicket"
KITCHEN_TICKET_UPDATED = "KitchenTicketUpdated"
# Device push for station-subscribed displays ("Nueva comanda")
KITCHEN_PUSH = "KitchenPush"

# =============================================================================
# Table events
# =============================================================================

TABLE_SESSION_OPENED = "TableSessionOpened"
TABLE_SESSION_CLOSED = "TableSessionClosed"
TABLE_STATUS_CHANGED = "TableStatusChanged"

ALL_EVENT_TYPES = frozenset({
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    TABLE_ORDER_CREATED,
    NEW_KITCHEN_TICKET,
    KITCHEN_TICKET_UPDATED,
    KITCHEN_PUSH,
    TABLE_SESSION_OPENED,
    TABLE_SESSION_CLOSED,
    TABLE_STATUS_CHANGED,
})

# =============================================================================
# Size limits
# =============================================================================

# Same as the WebSocket message limit
MAX_EVENT_SIZE = settings.ws_max_message_size
