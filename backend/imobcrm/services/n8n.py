"""
N8N service - forwards inbound WhatsApp messages to the N8N agent workflow
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Any, Dict

import httpx

from ..core.config import settings
from ..core.exceptions import IntegrationError
from .database import db
from .whatsapp import whatsapp

logger = logging.getLogger(__name__)

WEBHOOK_SETTING_KEY = "n8n_webhook_url"


class N8NService:
    """Triggers the configured N8N webhook and relays its reply"""

    async def get_webhook_url(self) -> Optional[str]:
        value = await db.get_system_setting(None, WEBHOOK_SETTING_KEY)
        if isinstance(value, dict):
            value = value.get("value")
        if not value or not isinstance(value, str) or value.strip() in ("", '""'):
            return None
        return value.strip()

    @staticmethod
    def build_payload(
        phone_number: str,
        message_body: Optional[str],
        message_type: Optional[str] = None,
        contact_name: Optional[str] = None,
        contact_type: Optional[str] = None,
        media_url: Optional[str] = None,
        media_type: Optional[str] = None
    ) -> Dict[str, Any]:
        return {
            "phone_number": phone_number,
            "message": message_body,
            "message_type": message_type or "text",
            "contact_name": contact_name,
            "contact_type": contact_type,
            "media_url": media_url,
            "media_type": media_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": "whatsapp",
            "platform": "lovable-crm",
        }

    async def trigger(self, phone_number: str, message_body: Optional[str], **fields) -> Dict[str, Any]:
        """
        Send one message to N8N.

        When N8N answers with ``response`` or ``message`` the text is sent back
        to the contact over WhatsApp.

        Raises:
            IntegrationError: webhook URL not configured (400)
        """
        webhook_url = await self.get_webhook_url()
        if not webhook_url:
            raise IntegrationError("n8n", "N8N webhook URL not configured", 400)

        payload = self.build_payload(phone_number, message_body, **fields)
        logger.info(f"[N8N] Sending message from {phone_number} to {webhook_url}")

        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.post(webhook_url, json=payload)

        logger.debug(f"[N8N] Response {response.status_code}: {response.text[:500]}")
        try:
            data: Any = response.json()
        except ValueError:
            data = {"raw": response.text}

        now = datetime.now(timezone.utc).isoformat()
        await db.upsert_conversation_state({
            "phone_number": phone_number,
            "is_ai_active": True,
            "ai_started_at": now,
            "last_ai_message_at": now,
            "updated_at": now,
        })

        if isinstance(data, dict):
            reply = data.get("response") or data.get("message")
            if reply:
                await whatsapp.send_text(phone_number, reply)

        return {"success": True, "n8n_status": response.status_code, "data": data}


n8n = N8NService()
