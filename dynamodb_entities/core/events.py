"""
Entity change notifications.

Entity types opt in with ``Meta.publish_changes = True``. Repositories then
publish an EntityChangeEvent to their ChangeDispatcher after every successful
create, update and delete.

Handlers are plain callables subscribed per entity type, or methods of a
service object decorated with @subscribe_to_changes and registered in one go:

    class UserService:
        @subscribe_to_changes(User, "create")
        def on_user_created(self, event: EntityChangeEvent):
            send_welcome_email(event.entity)

    dispatcher.register_service(UserService())

Delivery is synchronous and in registration order, once per operation per
subscription. A failing handler is logged and never fails the storage
operation or the handlers after it.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

ALL_EVENTS = "all"
_SUBSCRIPTIONS_ATTR = "__entity_change_subscriptions__"


class TriggerEvent(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class EntityChangeEvent:
    """One entity lifecycle change.

    ``previous`` is the stored snapshot before an update, and the deleted
    snapshot for a delete.
    """
    entity_class: str
    event: TriggerEvent
    entity: Any
    previous: Optional[Any] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _normalize_event(event: Any) -> str:
    if isinstance(event, TriggerEvent):
        return event.value
    if event == ALL_EVENTS or event in {e.value for e in TriggerEvent}:
        return event
    raise ValidationError(f"Unknown change event '{event}'. Expected one of: create, update, delete, all")


def subscribe_to_changes(entity_class: type, event: Any = ALL_EVENTS):
    """Mark a service method as a handler of entity_class changes.

    The method is subscribed when its service is passed to
    ChangeDispatcher.register_service().
    """
    normalized = _normalize_event(event)

    def decorator(func):
        marks = list(getattr(func, _SUBSCRIPTIONS_ATTR, []))
        marks.append((entity_class, normalized))
        setattr(func, _SUBSCRIPTIONS_ATTR, marks)
        return func

    return decorator


class Subscription:
    """Handle returned by ChangeDispatcher.subscribe()."""

    def __init__(self, dispatcher: "ChangeDispatcher", entity_class: type, event: str, handler: Callable, key: str):
        self._dispatcher = dispatcher
        self.entity_class = entity_class
        self.event = event
        self.handler = handler
        self.key = key

    @property
    def active(self) -> bool:
        return self._dispatcher._is_active(self)

    def accepts(self, entity_class: type, event: TriggerEvent) -> bool:
        return self.entity_class is entity_class and self.event in (ALL_EVENTS, event.value)

    def cancel(self) -> None:
        self._dispatcher._remove(self)

    def __repr__(self) -> str:
        return f"Subscription(key={self.key!r})"


class ChangeDispatcher:
    """Routes entity change events to subscribed handlers."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._services: Dict[int, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        entity_class: type,
        handler: Callable[[EntityChangeEvent], Any],
        event: Any = ALL_EVENTS,
        key: Optional[str] = None
    ) -> Subscription:
        """Subscribe a handler to changes of entity_class.

        Args:
            entity_class: Entity model class to observe
            handler: Callable receiving an EntityChangeEvent
            event: "create", "update", "delete" or "all"
            key: Optional label reported by stats() and in handler failure logs

        Returns:
            Subscription that can be cancelled
        """
        normalized = _normalize_event(event)
        key = key or f"{entity_class.__name__}:{normalized}:{getattr(handler, '__qualname__', repr(handler))}"
        subscription = Subscription(self, entity_class, normalized, handler, key)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(f"Subscribed {key}")
        return subscription

    def publish(self, entity_class: type, event: Any, entity: Any, previous: Any = None) -> EntityChangeEvent:
        """Deliver a change event to every matching subscription."""
        change = EntityChangeEvent(
            entity_class=entity_class.__name__,
            event=TriggerEvent(event),
            entity=entity,
            previous=previous,
        )
        with self._lock:
            subscriptions = list(self._subscriptions)

        for subscription in subscriptions:
            if not subscription.accepts(entity_class, change.event):
                continue
            try:
                subscription.handler(change)
            except Exception:
                logger.exception(f"Subscription handler error in {subscription.key}")
        return change

    def register_service(self, service: Any) -> List[Subscription]:
        """Subscribe every @subscribe_to_changes method of a service instance."""
        service_type = type(service)
        created = []
        # Definition order, base classes first
        names = {name: None for klass in reversed(service_type.__mro__) for name in vars(klass)}
        for name in names:
            marks = getattr(getattr(service_type, name, None), _SUBSCRIPTIONS_ATTR, None)
            if not marks:
                continue
            handler = getattr(service, name)
            for entity_class, event in marks:
                key = f"{entity_class.__name__}:{event}:{name}:{service_type.__name__}"
                created.append(self.subscribe(entity_class, handler, event, key=key))

        with self._lock:
            self._services.setdefault(id(service), []).extend(created)
        logger.info(f"Registered {len(created)} change subscription(s) for {service_type.__name__}")
        return created

    def unregister_service(self, service: Any) -> None:
        """Cancel every subscription created by register_service(service)."""
        with self._lock:
            subscriptions = self._services.pop(id(service), [])
        for subscription in subscriptions:
            subscription.cancel()

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()
            self._services.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active_subscriptions": len(self._subscriptions),
                "subscription_keys": [s.key for s in self._subscriptions],
            }

    def _is_active(self, subscription: Subscription) -> bool:
        with self._lock:
            return subscription in self._subscriptions

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
