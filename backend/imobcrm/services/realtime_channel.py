"""
Supabase realtime binding for the message fan-out
"""
import asyncio
import logging
from typing import Optional, Any, Dict, Set

from supabase import acreate_client, AsyncClient

from ..core.config import settings
from .realtime import MessageFanout, EVENT_INSERT, EVENT_UPDATE

logger = logging.getLogger(__name__)

CHANNEL_NAME = "messages-fanout"
MESSAGES_TABLE = "messages"


def extract_change(payload: Dict[str, Any]) -> tuple[Optional[str], Optional[Dict[str, Any]]]:
    """(event type, new row) from a postgres_changes payload"""
    data = payload.get("data", payload)
    event_type = data.get("type") or data.get("eventType")
    record = data.get("record") or data.get("new")
    if hasattr(event_type, "value"):
        event_type = event_type.value
    return event_type, record


class MessageChannel:
    """One shared realtime channel on the messages table feeding a fan-out"""

    def __init__(self, fanout: MessageFanout, client: Optional[AsyncClient] = None):
        self.fanout = fanout
        self.client = client
        self.channel = None
        self._tasks: Set[asyncio.Task] = set()

    def _on_change(self, payload: Dict[str, Any]) -> None:
        event_type, record = extract_change(payload)
        if not record:
            return
        task = asyncio.ensure_future(self.fanout.handle_change(event_type, record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def start(self) -> None:
        if self.client is None:
            self.client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)

        self.channel = self.client.channel(CHANNEL_NAME)
        self.channel.on_postgres_changes(
            EVENT_INSERT, schema="public", table=MESSAGES_TABLE, callback=self._on_change
        )
        self.channel.on_postgres_changes(
            EVENT_UPDATE, schema="public", table=MESSAGES_TABLE, callback=self._on_change
        )
        await self.channel.subscribe()
        logger.info(f"[Realtime] Subscribed to {MESSAGES_TABLE} changes on '{CHANNEL_NAME}'")

    async def stop(self) -> None:
        if self.channel is not None and self.client is not None:
            await self.client.remove_channel(self.channel)
            logger.info("[Realtime] Channel removed")
        self.channel = None
