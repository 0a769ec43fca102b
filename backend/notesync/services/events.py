"""
NoteSync Backend — Domain Event Bus
====================================

What:  Synchronous fan-out of domain events (create, update, delete, archive,
       star) to registered observers.
How:   Observers are plain callables taking a `DomainEvent`. The bus keeps
       them in subscription order; one observer raising is logged and does
       not stop delivery to the rest.
Who:   Stores emit events after their write has been flushed/committed.

Built-in observers:
    - log_observer:     logs every event (always subscribed by the container)
    - ActivityTracker:  keeps structured activity records, queryable per owner
    - WebhookNotifier:  POSTs events to WEBHOOK_URL; without a URL it does nothing
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ARCHIVE = "archive"
    STAR = "star"


@dataclass(frozen=True)
class DomainEvent:
    kind: EventKind
    entity: str  # "note" or "category"
    owner_id: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def entity_id(self) -> Optional[str]:
        return self.payload.get("doc_id") or self.payload.get("id")


Observer = Callable[[DomainEvent], None]


class EventBus:
    """Ordered, idempotent observer registry."""

    def __init__(self) -> None:
        self._observers: List[Observer] = []

    @property
    def observers(self) -> List[Observer]:
        return list(self._observers)

    def subscribe(self, observer: Observer) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def notify(self, event: DomainEvent) -> None:
        # Snapshot: observers may (un)subscribe while being notified
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception(
                    "Observer %r failed on %s %s event",
                    observer,
                    event.entity,
                    event.kind.value,
                )


# ══════════════════════════════════════════════════════════════════════════
# Built-in Observers
# ══════════════════════════════════════════════════════════════════════════


def log_observer(event: DomainEvent) -> None:
    logger.info(
        "%s %s event: id=%s owner=%s",
        event.entity,
        event.kind.value,
        event.entity_id,
        event.owner_id,
    )
    logger.debug("Event payload: %s", event.payload)


@dataclass
class ActivityRecord:
    event: str
    entity: str
    entity_id: Optional[str]
    owner_id: Optional[str]
    timestamp: datetime
    details: Dict[str, Any] = field(default_factory=dict)


class ActivityTracker:
    """
    Records one structured activity per event.

    Details depend on the kind:
        create  → title, category (note) or name (category)
        update  → updated_fields, notes_updated
        delete  → reason, notes_deleted
        archive → archived
        star    → starred

    Records live in a bounded deque; the oldest are dropped first.
    """

    def __init__(self, max_records: int = 1000):
        self._records: Deque[ActivityRecord] = deque(maxlen=max_records)

    def __call__(self, event: DomainEvent) -> None:
        payload = event.payload
        details: Dict[str, Any] = {}

        if event.kind is EventKind.CREATE:
            details["title"] = payload.get("title")
            details["category"] = payload.get("category")
            if event.entity == "category":
                details["name"] = payload.get("name")
        elif event.kind is EventKind.UPDATE:
            details["updated_fields"] = payload.get("updated_fields", [])
            if "notes_updated" in payload:
                details["notes_updated"] = payload["notes_updated"]
        elif event.kind is EventKind.DELETE:
            details["reason"] = payload.get("reason", "User initiated")
            if "notes_deleted" in payload:
                details["notes_deleted"] = payload["notes_deleted"]
        elif event.kind is EventKind.ARCHIVE:
            details["archived"] = payload.get("is_archived")
        elif event.kind is EventKind.STAR:
            details["starred"] = payload.get("is_starred")

        self._records.append(
            ActivityRecord(
                event=event.kind.value,
                entity=event.entity,
                entity_id=event.entity_id,
                owner_id=event.owner_id,
                timestamp=event.occurred_at,
                details=details,
            )
        )
        logger.debug("Activity recorded: %s %s %s", event.entity, event.kind.value, event.entity_id)

    @property
    def records(self) -> List[ActivityRecord]:
        return list(self._records)

    def for_owner(self, owner_id: str, limit: int = 50) -> List[ActivityRecord]:
        """Most recent first."""
        matching = [r for r in reversed(self._records) if r.owner_id == owner_id]
        return matching[:limit]


class WebhookNotifier:
    """
    Forwards events to an external webhook.

    With no URL configured this is a silent no-op. Otherwise the POST is
    scheduled on the running event loop and never blocks the notifying
    request; delivery failures are logged.
    """

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 5.0):
        self.webhook_url = webhook_url or None
        self.timeout = timeout
        self._pending: set = set()

    def __call__(self, event: DomainEvent) -> None:
        if not self.webhook_url:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; webhook for %s event skipped", event.kind.value)
            return

        task = loop.create_task(self._post(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self, event: DomainEvent) -> None:
        body = {
            "event": event.kind.value,
            "entity": event.entity,
            "id": event.entity_id,
            "owner_id": event.owner_id,
            "timestamp": event.occurred_at.isoformat(),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=body)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Webhook delivery to %s failed: %s", self.webhook_url, str(e))
