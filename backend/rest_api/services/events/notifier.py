"""
Realtime notifications for staff clients.

Services call the Notifier after their transaction commits. Each call builds
an Event for one topic and hands it to FastAPI ``BackgroundTasks``, so the
Redis publish runs after the response is sent. Publish failures are logged
and never reach the caller.

Outside a request (scripts, seeds) there are no BackgroundTasks; events are
then published inline on the running loop or a fresh one.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from fastapi import BackgroundTasks
from pydantic import BaseModel
from redis.exceptions import RedisError

from shared.config.logging import get_logger
from shared.infrastructure.events import (
    Event,
    get_redis_pool,
    publish_event,
    topic_admins,
    topic_branch_admins,
    topic_kitchen,
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    TABLE_ORDER_CREATED,
    NEW_KITCHEN_TICKET,
    KITCHEN_TICKET_UPDATED,
    KITCHEN_PUSH,
    TABLE_SESSION_OPENED,
    TABLE_SESSION_CLOSED,
    TABLE_STATUS_CHANGED,
)

if TYPE_CHECKING:
    from rest_api.models import Order, Table, TableSession
    from shared.utils.kitchen_schemas import KitchenTicketOutput

logger = get_logger(__name__)


async def _publish_safely(event: Event) -> None:
    try:
        redis_client = await get_redis_pool()
        receivers = await publish_event(redis_client, event)
        logger.debug("Notification sent", topic=event.topic, event_type=event.type, receivers=receivers)
    except (RedisError, OSError, ValueError) as e:
        logger.error(
            "Notification failed",
            topic=event.topic,
            event_type=event.type,
            error=str(e),
            error_type=type(e).__name__,
        )
    except Exception as e:
        # Background task: nothing above us would report it
        logger.error(
            "Notification failed",
            topic=event.topic,
            event_type=event.type,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )


def _task_error_callback(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Notification task failed", task_name=task.get_name(), error=str(exc))


def _run_async(coro, task_name: str) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(coro)
        return
    task = loop.create_task(coro, name=task_name)
    task.add_done_callback(_task_error_callback)


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


class Notifier:
    """
    Queues realtime events for the current request.

    Usage:
        @router.post("/{table_id}/open-session")
        def open_session(..., notifier: Notifier = Depends(get_notifier)):
            TableService(db, notifier).open_session(...)
    """

    def __init__(self, background_tasks: BackgroundTasks | None = None):
        self._background_tasks = background_tasks

    def queue(self, topic: str, event_type: str, payload: dict[str, Any]) -> None:
        """Queue one event. Invalid events are logged and dropped."""
        try:
            event = Event(type=event_type, topic=topic, payload=payload)
        except ValueError as e:
            logger.error("Invalid notification dropped", topic=topic, event_type=event_type, error=str(e))
            return

        if self._background_tasks is not None:
            self._background_tasks.add_task(_publish_safely, event)
        else:
            _run_async(_publish_safely(event), task_name=f"notify:{event_type}:{topic}")

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    def order_created(self, order: "Order") -> None:
        """OrderCreated to all admins, mirrored to the branch topic."""
        payload = {
            "id": order.id,
            "branchId": order.branch_id,
            "customerName": order.customer_name,
            "phone": order.phone,
            "takeMode": order.take_mode,
            "totalCents": order.total_cents,
            "status": order.status,
            "createdAt": order.created_at.isoformat(),
        }
        self.queue(topic_admins(), ORDER_CREATED, payload)
        if order.branch_id:
            self.queue(topic_branch_admins(order.branch_id), ORDER_CREATED, payload)

    def table_order_created(self, order: "Order", session: "TableSession", table: "Table") -> None:
        self.queue(
            topic_admins(),
            TABLE_ORDER_CREATED,
            {
                "orderId": order.id,
                "sessionId": session.id,
                "tableId": table.id,
                "tableName": table.name,
            },
        )

    def order_status_changed(self, order: "Order", previous_status: str) -> None:
        payload = {
            "id": order.id,
            "branchId": order.branch_id,
            "status": order.status,
            "previousStatus": previous_status,
        }
        self.queue(topic_admins(), ORDER_STATUS_CHANGED, payload)
        if order.branch_id:
            self.queue(topic_branch_admins(order.branch_id), ORDER_STATUS_CHANGED, payload)

    # -------------------------------------------------------------------------
    # Kitchen tickets
    # -------------------------------------------------------------------------

    def ticket_created(self, ticket: "KitchenTicketOutput") -> None:
        """NewKitchenTicket plus the device push, both on the station topic."""
        topic = topic_kitchen(ticket.station)
        self.queue(topic, NEW_KITCHEN_TICKET, _dump(ticket))

        item_count = sum(item.qty for item in ticket.items)
        where = f"Mesa {ticket.table_name}" if ticket.table_name else (ticket.customer_name or "Pedido")
        self.queue(
            topic,
            KITCHEN_PUSH,
            {
                "title": "Nueva comanda",
                "body": f"{where}: {item_count} item(s)",
                "ticketId": ticket.id,
                "ticketNumber": ticket.ticket_number,
                "station": ticket.station,
            },
        )

    def ticket_updated(self, ticket: "KitchenTicketOutput") -> None:
        self.queue(topic_kitchen(ticket.station), KITCHEN_TICKET_UPDATED, _dump(ticket))

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def table_status_changed(self, table: "Table") -> None:
        self.queue(
            topic_admins(),
            TABLE_STATUS_CHANGED,
            {
                "tableId": table.id,
                "tableName": table.name,
                "status": table.status,
                "branchId": table.branch_id,
            },
        )

    def session_opened(self, session: "TableSession", table: "Table") -> None:
        self.queue(
            topic_admins(),
            TABLE_SESSION_OPENED,
            {"sessionId": session.id, "tableId": table.id, "tableName": table.name},
        )

    def session_closed(self, session: "TableSession", table: "Table") -> None:
        self.queue(
            topic_admins(),
            TABLE_SESSION_CLOSED,
            {
                "sessionId": session.id,
                "tableId": table.id,
                "tableName": table.name,
                "totalCents": session.total_cents,
            },
        )


def get_notifier(background_tasks: BackgroundTasks) -> Notifier:
    """FastAPI dependency: a Notifier bound to the request's background tasks."""
    return Notifier(background_tasks)
