"""
WhatsApp message rows as delivered by the realtime channel
"""
from enum import Enum
from typing import Optional, Union
from datetime import datetime
from pydantic import BaseModel


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageRow(BaseModel):
    """A row of the messages table"""
    id: Union[int, str]
    conversation_id: Optional[str] = None
    direction: MessageDirection = MessageDirection.INBOUND
    wa_from: Optional[str] = None
    wa_to: Optional[str] = None
    body: Optional[str] = None
    message_type: Optional[str] = None
    department_code: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"extra": "allow"}

    @property
    def is_inbound(self) -> bool:
        return self.direction == MessageDirection.INBOUND

    @property
    def counterpart_phone(self) -> Optional[str]:
        """Phone of the customer: sender for inbound, recipient for outbound"""
        return self.wa_from if self.is_inbound else self.wa_to
