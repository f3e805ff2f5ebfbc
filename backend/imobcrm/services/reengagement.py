"""
Reengagement Service - Nudges portal leads that stopped answering.

Each sweep picks qualifying leads silent for longer than
``ai_behavior_config.reengagement_hours`` and sends the next of three
attempts. After the third attempt the lead is marked cold.
"""
import asyncio
import logging
import random
from datetime import datetime, timezone, timedelta
from typing import Optional, Any, Dict, List, Callable, Awaitable

from ..models import LeadToReengage, ReengagementReport, QualificationStatus, TransactionType
from .database import db
from .whatsapp import whatsapp, WhatsAppService

logger = logging.getLogger(__name__)

DEFAULT_REENGAGEMENT_HOURS = 6
MAX_ATTEMPTS = 3
BATCH_LIMIT = 50
SEND_INTERVAL_SECONDS = 0.5


def _interest_phrase(interest: Optional[str]) -> str:
    if interest == "locacao":
        return " um imóvel para alugar"
    if interest == "compra":
        return " um imóvel para comprar"
    return " imóveis"


def reengagement_messages(
    attempt: int,
    contact_name: Optional[str],
    property_info: Optional[str],
    interest: Optional[str]
) -> List[str]:
    """Candidate messages for an attempt (attempts past the third reuse the last set)"""
    name = f", {contact_name}" if contact_name else ""
    looking_for = f" em {property_info}" if property_info else " em imóveis"

    if attempt == 1:
        return [
            f"Oi{name}! 👋 Vi que você estava interessado{looking_for}. Posso te ajudar com mais informações?",
            f"Olá{name}! 😊 Lembrei de você! Ainda está buscando{_interest_phrase(interest)}?",
            f"Oi{name}! Tudo bem? 🏠 Só passando para ver se ainda posso te ajudar com sua busca de imóveis!",
        ]
    if attempt == 2:
        return [
            f"Oi{name}! Apareceram algumas opções novas que podem te interessar. Quer dar uma olhada? 🏡",
            f"Olá{name}! Só um lembrete amigável 😊 Ainda estou aqui para te ajudar a encontrar o imóvel ideal!",
            f"Oi{name}! Temos novidades que podem combinar com o que você busca. Posso te mostrar?",
        ]
    return [
        f"Oi{name}! Última tentativa de contato 😅 Se mudar de ideia, é só me chamar aqui!",
        f"Olá{name}! Se ainda estiver buscando imóveis, estou à disposição. Qualquer dúvida, me chama!",
    ]


def describe_portal_listing(row: Optional[Dict[str, Any]]) -> Optional[str]:
    """"comprar um imóvel (código X)" style summary of the portal lead"""
    if not row:
        return None
    info = ""
    if row.get("transaction_type") == TransactionType.SELL.value:
        info = "comprar um imóvel"
    elif row.get("transaction_type") == TransactionType.RENT.value:
        info = "alugar um imóvel"
    if row.get("origin_listing_id"):
        info += f" (código {row['origin_listing_id']})"
    return info or None


class ReengagementService:
    """
    Runs reengagement sweeps.

    Features:
    - Configurable silence window (hours) from ai_behavior_config
    - Personalised message per attempt with the contact name and listing
    - Cold marking after the third attempt
    """

    def __init__(
        self,
        sender: Optional[WhatsAppService] = None,
        choose: Callable[[List[str]], str] = random.choice,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        interval: float = SEND_INTERVAL_SECONDS
    ):
        self.sender = sender or whatsapp
        self.choose = choose
        self.sleep = sleep
        self.interval = interval

    async def get_reengagement_hours(self) -> float:
        config = await db.get_ai_behavior_config()
        if not config:
            logger.info("[Reengagement] No AI behavior config found, using defaults")
            return DEFAULT_REENGAGEMENT_HOURS
        hours = config.get("reengagement_hours")
        return DEFAULT_REENGAGEMENT_HOURS if hours is None else hours

    async def _resolve_context(self, lead: LeadToReengage) -> tuple[Optional[str], Optional[str]]:
        portal_row = await db.get_portal_lead_log(lead.portal_lead_id) if lead.portal_lead_id else None
        contact_name = portal_row.get("contact_name") if portal_row else None
        if not contact_name:
            contact = await db.get_contact_by_phone(lead.phone_number)
            contact_name = contact.get("name") if contact else None
        return contact_name, describe_portal_listing(portal_row)

    def build_message(self, lead: LeadToReengage, attempt: int, contact_name: Optional[str], property_info: Optional[str]) -> str:
        candidates = reengagement_messages(attempt, contact_name, property_info, lead.detected_interest)
        return self.choose(candidates)

    async def record_attempt(self, lead_id: str, attempt: int) -> None:
        """Store the attempt; the last one closes the lead as cold"""
        now = datetime.now(timezone.utc).isoformat()
        update: Dict[str, Any] = {
            "reengagement_attempts": attempt,
            "last_reengagement_at": now,
            "updated_at": now,
        }
        if attempt >= MAX_ATTEMPTS:
            update.update({
                "needs_reengagement": False,
                "qualification_status": QualificationStatus.COLD.value,
                "disqualification_reason": "sem_resposta",
                "completed_at": now,
            })
            logger.info(f"[Reengagement] Lead {lead_id} marked as cold after {attempt} attempts")
        await db.update_lead_qualification(lead_id, update)

    async def run(self) -> ReengagementReport:
        """Run one sweep"""
        hours = await self.get_reengagement_hours()
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        logger.info(f"[Reengagement] Looking for leads inactive for {hours}+ hours")

        leads = await db.get_leads_needing_reengagement(cutoff.isoformat(), limit=BATCH_LIMIT)
        if not leads:
            return ReengagementReport(message="No leads to reengage", processed=0, sent=None, failed=None)

        report = ReengagementReport(processed=len(leads))
        for lead in leads:
            attempt = lead.reengagement_attempts + 1
            contact_name, property_info = await self._resolve_context(lead)
            message = self.build_message(lead, attempt, contact_name, property_info)

            sent = await self.sender.send_text(lead.phone_number, message)
            await self.record_attempt(lead.id, attempt)

            if sent:
                report.sent += 1
            else:
                report.failed += 1

            await self.sleep(self.interval)

        logger.info(f"[Reengagement] Completed: {report.sent} sent, {report.failed} failed")
        return report


reengagement = ReengagementService()
