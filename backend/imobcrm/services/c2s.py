"""
C2S service - sends qualified leads to Contact2Sale
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Any, Dict

import httpx

from ..core.config import settings
from ..core.exceptions import IntegrationError
from ..models import C2SLead
from .database import db
from .phone import digits_only

logger = logging.getLogger(__name__)

C2S_LEADS_URL = "https://api.contact2sale.com/integration/leads"


class C2SService:
    """Contact2Sale lead intake client"""

    def __init__(self, api_token: Optional[str] = None, url: str = C2S_LEADS_URL):
        self.api_token = api_token or settings.C2S_API_TOKEN
        self.url = url

    @staticmethod
    def build_description(lead: C2SLead) -> str:
        """Property criteria joined with " | ", followed by the free-text description"""
        criteria = []
        if lead.development_name:
            criteria.append(f"Empreendimento: {lead.development_name}")
        if lead.property_type:
            criteria.append(f"Tipo: {lead.property_type}")
        # Neighborhood is implied by the development
        if lead.neighborhood and not lead.development_name:
            criteria.append(f"Bairro: {lead.neighborhood}")
        if lead.price_range:
            criteria.append(f"Faixa de preço: {lead.price_range}")
        if lead.bedrooms:
            criteria.append(f"Quartos: {lead.bedrooms}")
        if lead.interesse:
            criteria.append(f"Interesse: {lead.interesse}")
        if lead.motivacao:
            criteria.append(f"Motivação: {lead.motivacao}")

        description = " | ".join(criteria)
        if lead.description:
            description = f"{description} - {lead.description}" if description else lead.description
        return description

    @classmethod
    def build_payload(cls, lead: C2SLead) -> Dict[str, Any]:
        source = f"Smolka AI - {lead.development_name}" if lead.development_name else "Smolka AI - Nina"
        return {
            "data": {
                "type": "lead",
                "attributes": {
                    "name": lead.name,
                    "phone": digits_only(lead.phone),
                    "email": lead.email or None,
                    "type_negotiation": lead.type_negotiation or "Compra",
                    "description": cls.build_description(lead) or "Lead qualificado via WhatsApp",
                    "body": lead.conversation_history or "",
                    "source": source,
                },
            },
        }

    async def create_lead(self, lead: C2SLead) -> Dict[str, Any]:
        """
        Create the lead in C2S and record the outcome in c2s_integration.

        Raises:
            IntegrationError: missing token, missing name/phone or API failure
        """
        if not self.api_token:
            raise IntegrationError("c2s", "C2S_API_TOKEN não configurado", 500)
        if not lead.name or not lead.phone:
            raise IntegrationError("c2s", "Nome e telefone são obrigatórios", 400)

        payload = self.build_payload(lead)
        logger.info(f"[C2S] Sending lead {lead.name} ({payload['data']['attributes']['phone']})")

        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_token}"}
            )

        try:
            result = response.json()
        except ValueError:
            result = {"message": response.text}

        lead_data = lead.model_dump(exclude_none=True)
        if response.status_code >= 400:
            message = result.get("message") if isinstance(result, dict) else None
            logger.error(f"[C2S] API error {response.status_code}: {result}")
            await db.record_c2s_result({
                "contact_id": lead.contact_id,
                "conversation_id": lead.conversation_id,
                "sync_status": "error",
                "lead_data": lead_data,
                "error_message": message or str(result),
            })
            raise IntegrationError("c2s", message or "Erro ao enviar lead para C2S", 500)

        data = result.get("data") if isinstance(result, dict) else None
        c2s_lead_id = (data or {}).get("id") if isinstance(data, dict) else None
        c2s_lead_id = c2s_lead_id or (result.get("id") if isinstance(result, dict) else None)

        await db.record_c2s_result({
            "contact_id": lead.contact_id,
            "conversation_id": lead.conversation_id,
            "c2s_lead_id": c2s_lead_id,
            "sync_status": "synced",
            "lead_data": lead_data,
            "synced_at": datetime.now(timezone.utc).isoformat(),
        })
        logger.info(f"[C2S] Lead sent, id {c2s_lead_id}")

        return {
            "success": True,
            "c2s_lead_id": c2s_lead_id,
            "message": "Lead enviado para C2S com sucesso",
        }


c2s = C2SService()
