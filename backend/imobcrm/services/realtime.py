"""
Realtime Service - Fan-out of message table changes to in-process listeners.

One shared subscription feeds ``MessageFanout``; listeners register per
conversation id or, for legacy screens, per phone number. INSERT events are
deduplicated with a bounded cache of seen message ids. Everything here is
in-memory: a restart starts with an empty cache and no listeners.
"""
import inspect
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Any, Dict, List, Callable, Awaitable, Union

from ..core.config import settings
from ..models import MessageRow
from .phone import digits_only

logger = logging.getLogger(__name__)

Listener = Callable[[MessageRow, str], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]
DepartmentResolver = Callable[[str], Awaitable[Optional[str]]]
Notifier = Callable[[MessageRow], Union[None, Awaitable[None]]]

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"


class SeenMessageCache:
    """
    Insertion-ordered set of message ids with a hard size bound.

    When an insert pushes the size past ``max_size`` the ``evict_batch``
    oldest ids are dropped at once.
    """

    def __init__(self, max_size: Optional[int] = None, evict_batch: Optional[int] = None):
        self.max_size = max_size or settings.REALTIME_CACHE_SIZE
        self.evict_batch = evict_batch or settings.REALTIME_EVICT_BATCH
        self._ids: "OrderedDict[str, None]" = OrderedDict()

    def __contains__(self, message_id: object) -> bool:
        return str(message_id) in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, message_id: Any) -> bool:
        """Remember an id; returns False when it was already seen"""
        key = str(message_id)
        if key in self._ids:
            return False
        self._ids[key] = None
        if len(self._ids) > self.max_size:
            for _ in range(min(self.evict_batch, len(self._ids))):
                self._ids.popitem(last=False)
        return True

    def clear(self) -> None:
        self._ids.clear()


@dataclass
class ViewerState:
    """What the operator is looking at when a message arrives"""
    active_conversation_id: Optional[str] = None
    window_focused: bool = True
    department: Optional[str] = None


class NotificationPolicy:
    """
    Decides whether an inbound message should play the notification sound.

    Rules:
    - outbound messages never notify
    - the conversation on screen (window focused) never notifies
    - with a viewer department, only messages of that department or
      unassigned conversations notify
    """

    def __init__(self, resolve_department: Optional[DepartmentResolver] = None):
        self.resolve_department = resolve_department

    async def should_notify(self, message: MessageRow, viewer: Optional[ViewerState]) -> bool:
        if not message.is_inbound:
            return False

        viewer = viewer or ViewerState()
        if (
            viewer.window_focused
            and viewer.active_conversation_id
            and message.conversation_id == viewer.active_conversation_id
        ):
            return False

        if not viewer.department:
            return True

        department = message.department_code
        if department is None and message.conversation_id and self.resolve_department:
            try:
                department = await self.resolve_department(message.conversation_id)
            except Exception as e:
                logger.error(f"[Realtime] Error resolving department for {message.conversation_id}: {e}")
                department = None

        return department is None or department == viewer.department


class MessageFanout:
    """
    Redistributes message rows to subscribed listeners.

    Features:
    - Listeners keyed by conversation id or normalized phone
    - INSERT dedupe through ``SeenMessageCache`` (UPDATEs always delivered)
    - A failing listener is logged and the others still receive the row
    - Optional sound notification for inbound inserts
    """

    def __init__(
        self,
        cache: Optional[SeenMessageCache] = None,
        policy: Optional[NotificationPolicy] = None,
        notifier: Optional[Notifier] = None,
        viewer: Optional[ViewerState] = None
    ):
        self.cache = cache or SeenMessageCache()
        self.policy = policy or NotificationPolicy()
        self.notifier = notifier
        self.viewer = viewer or ViewerState()
        self._by_conversation: Dict[str, List[Listener]] = {}
        self._by_phone: Dict[str, List[Listener]] = {}

    # ==================== Subscriptions ====================

    def subscribe_conversation(self, conversation_id: str, listener: Listener) -> Unsubscribe:
        return self._subscribe(self._by_conversation, str(conversation_id), listener)

    def subscribe_phone(self, phone: str, listener: Listener) -> Unsubscribe:
        return self._subscribe(self._by_phone, digits_only(phone), listener)

    @staticmethod
    def _subscribe(registry: Dict[str, List[Listener]], key: str, listener: Listener) -> Unsubscribe:
        registry.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = registry.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    registry.pop(key, None)

        return unsubscribe

    def listener_count(self) -> int:
        return sum(len(v) for v in self._by_conversation.values()) + sum(len(v) for v in self._by_phone.values())

    def set_viewer(self, viewer: ViewerState) -> None:
        self.viewer = viewer

    # ==================== Events ====================

    async def handle_change(self, event_type: str, row: Dict[str, Any]) -> int:
        """Entry point for postgres_changes payloads; returns listeners reached"""
        if event_type == EVENT_INSERT:
            return await self.handle_insert(row)
        if event_type == EVENT_UPDATE:
            return await self.handle_update(row)
        logger.debug(f"[Realtime] Ignoring {event_type} event")
        return 0

    async def handle_insert(self, row: Dict[str, Any]) -> int:
        message = MessageRow(**row)
        if message.id is not None and not self.cache.add(message.id):
            logger.debug(f"[Realtime] Duplicate message {message.id} skipped")
            return 0

        delivered = await self._dispatch(message, EVENT_INSERT)

        if self.notifier and await self.policy.should_notify(message, self.viewer):
            await self._call(self.notifier, message)
        return delivered

    async def handle_update(self, row: Dict[str, Any]) -> int:
        return await self._dispatch(MessageRow(**row), EVENT_UPDATE)

    def _listeners_for(self, message: MessageRow) -> List[Listener]:
        listeners: List[Listener] = []
        if message.conversation_id:
            listeners.extend(self._by_conversation.get(str(message.conversation_id), []))
        phone = digits_only(message.counterpart_phone)
        if phone:
            listeners.extend(self._by_phone.get(phone, []))

        unique: List[Listener] = []
        for listener in listeners:
            if listener not in unique:
                unique.append(listener)
        return unique

    async def _dispatch(self, message: MessageRow, event_type: str) -> int:
        delivered = 0
        for listener in self._listeners_for(message):
            try:
                await self._call(listener, message, event_type)
                delivered += 1
            except Exception as e:
                logger.error(f"[Realtime] Listener failed for message {message.id}: {e}")
        return delivered

    @staticmethod
    async def _call(callback: Callable, *args) -> None:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result


def create_message_fanout(
    notifier: Optional[Notifier] = None,
    resolve_department: Optional[DepartmentResolver] = None
) -> MessageFanout:
    """Factory function to create a MessageFanout"""
    return MessageFanout(policy=NotificationPolicy(resolve_department), notifier=notifier)
