"""
WhatsApp service - outbound messages through the send-wa-message edge function
"""
import json
import logging
from typing import Optional, Any, Dict

from ..core.supabase_client import supabase

logger = logging.getLogger(__name__)

SEND_MESSAGE_FUNCTION = "send-wa-message"
VISTA_UPDATE_FUNCTION = "vista-update-property"


class WhatsAppService:
    """
    Sends WhatsApp messages and Vista updates via Supabase edge functions.

    The edge functions own the WhatsApp Cloud API and Vista credentials; this
    service only forwards the payload and reports whether the call succeeded.
    """

    def __init__(self, client: Any = None):
        self._client = client

    @property
    def client(self) -> Any:
        return self._client or supabase

    def _invoke(self, function_name: str, body: Dict[str, Any]) -> Any:
        response = self.client.functions.invoke(function_name, invoke_options={"body": body})
        if isinstance(response, (bytes, bytearray)):
            try:
                return json.loads(response)
            except ValueError:
                return response.decode("utf-8", errors="replace")
        return response

    async def send_text(self, to: str, text: str) -> bool:
        """
        Send a text message.

        Args:
            to: Phone number (digits, with country code)
            text: Message body

        Returns:
            True when the edge function accepted the message
        """
        try:
            self._invoke(SEND_MESSAGE_FUNCTION, {"to": to, "text": text})
            logger.info(f"[WhatsApp] Message sent to {to}")
            return True
        except Exception as e:
            logger.error(f"[WhatsApp] Error sending message to {to}: {e}")
            return False

    async def update_vista_property(
        self,
        property_code: str,
        status: Optional[str] = None,
        value: Optional[Any] = None
    ) -> Dict[str, Any]:
        """Update a listing in the Vista CRM; errors propagate to the caller"""
        body = {"propertyCode": property_code, "status": status, "value": value}
        data = self._invoke(VISTA_UPDATE_FUNCTION, body)
        logger.info(f"[WhatsApp] Vista property {property_code} updated")
        return data if isinstance(data, dict) else {"response": data}


def create_whatsapp_service(client: Any = None) -> WhatsAppService:
    """Create WhatsApp service instance"""
    return WhatsAppService(client=client)


whatsapp = WhatsAppService()
