"""
Services Module
All backend services for the CRM
"""

# Database service
from .database import db, DatabaseService

# WhatsApp sender (edge functions)
from .whatsapp import whatsapp, WhatsAppService, create_whatsapp_service

# LLM (chat completions + intent detection)
from .llm import llm, LLMService

# Third-party integrations
from .clickup import clickup, ClickUpService
from .n8n import n8n, N8NService
from .c2s import c2s, C2SService
from .elevenlabs import elevenlabs, ElevenLabsService

# Leads
from .lead_intake import lead_intake, LeadIntakeService
from .contact_import import contact_import, ContactImportService, parse_contacts_csv
from .reengagement import reengagement, ReengagementService

# Operator assistant
from .communicator import communicator, CommunicatorService

# Realtime fan-out
from .realtime import (
    SeenMessageCache,
    ViewerState,
    NotificationPolicy,
    MessageFanout,
    create_message_fanout,
)
from .realtime_channel import MessageChannel

# Phone helpers
from .phone import digits_only, normalize_phone, format_brazilian_phone

__all__ = [
    "db",
    "DatabaseService",
    "whatsapp",
    "WhatsAppService",
    "create_whatsapp_service",
    "llm",
    "LLMService",
    "clickup",
    "ClickUpService",
    "n8n",
    "N8NService",
    "c2s",
    "C2SService",
    "elevenlabs",
    "ElevenLabsService",
    "lead_intake",
    "LeadIntakeService",
    "contact_import",
    "ContactImportService",
    "parse_contacts_csv",
    "reengagement",
    "ReengagementService",
    "communicator",
    "CommunicatorService",
    "SeenMessageCache",
    "ViewerState",
    "NotificationPolicy",
    "MessageFanout",
    "create_message_fanout",
    "MessageChannel",
    "digits_only",
    "normalize_phone",
    "format_brazilian_phone",
]
