"""
Tests for third-party payload builders (ClickUp, C2S, N8N).
"""
import pytest
from unittest.mock import AsyncMock, patch

from imobcrm.core.exceptions import IntegrationError
from imobcrm.models import C2SLead
from imobcrm.services.clickup import ClickUpService
from imobcrm.services.c2s import C2SService
from imobcrm.services.n8n import N8NService


@pytest.fixture
def ticket():
    return {
        "id": "ticket-1",
        "title": "Vazamento no banheiro",
        "description": "Cliente relata vazamento",
        "phone": "5548999998888",
        "email": None,
        "priority": "alta",
        "category": "manutencao",
        "stage": "novo",
    }


class TestClickUp:
    """Tests for ClickUp task payloads"""

    def test_build_task(self, ticket):
        task = ClickUpService.build_task(ticket, "Paula")

        assert task["name"] == "Vazamento no banheiro"
        assert task["priority"] == 2
        assert task["tags"] == ["manutencao", "novo", "alta"]
        assert "• Email: Não informado" in task["description"]
        assert task["description"].endswith("• Responsável: Paula")

    def test_unknown_priority(self, ticket):
        ticket["priority"] = "urgente"
        assert ClickUpService.build_task(ticket)["priority"] is None

    @pytest.mark.asyncio
    async def test_missing_token(self, ticket):
        service = ClickUpService(api_token="")
        service.api_token = None

        with pytest.raises(IntegrationError) as exc_info:
            await service.create_task(ticket, "list-1")
        assert exc_info.value.status_code == 500


class TestC2S:
    """Tests for Contact2Sale payloads"""

    def test_payload_with_development(self):
        lead = C2SLead(
            name="Ana", phone="+55 (48) 99999-8888", development_name="Jurerê Park",
            neighborhood="Jurerê", bedrooms=3, description="Quer visitar",
        )
        attributes = C2SService.build_payload(lead)["data"]["attributes"]

        assert attributes["phone"] == "5548999998888"
        assert attributes["source"] == "Smolka AI - Jurerê Park"
        assert attributes["type_negotiation"] == "Compra"
        assert attributes["description"] == "Empreendimento: Jurerê Park | Quartos: 3 - Quer visitar"

    def test_payload_defaults(self):
        attributes = C2SService.build_payload(C2SLead(name="Bruno", phone="48988887777"))["data"]["attributes"]

        assert attributes["source"] == "Smolka AI - Nina"
        assert attributes["description"] == "Lead qualificado via WhatsApp"
        assert attributes["body"] == ""

    @pytest.mark.asyncio
    async def test_requires_name_and_phone(self):
        with pytest.raises(IntegrationError) as exc_info:
            await C2SService(api_token="token").create_lead(C2SLead(name="Sem telefone"))
        assert exc_info.value.status_code == 400


class TestN8N:
    """Tests for the N8N trigger"""

    def test_build_payload(self):
        payload = N8NService.build_payload("5548999998888", "Oi", contact_name="Ana")

        assert payload["message"] == "Oi"
        assert payload["message_type"] == "text"
        assert payload["source"] == "whatsapp"
        assert payload["contact_name"] == "Ana"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stored,expected", [
        ("https://n8n.example.com/webhook/abc", "https://n8n.example.com/webhook/abc"),
        ({"value": " https://n8n.example.com/hook "}, "https://n8n.example.com/hook"),
        ('""', None),
        (None, None),
    ])
    async def test_webhook_url(self, stored, expected):
        mock_db = AsyncMock()
        mock_db.get_system_setting.return_value = stored

        with patch("imobcrm.services.n8n.db", mock_db):
            assert await N8NService().get_webhook_url() == expected

    @pytest.mark.asyncio
    async def test_trigger_without_url(self):
        mock_db = AsyncMock()
        mock_db.get_system_setting.return_value = None

        with patch("imobcrm.services.n8n.db", mock_db):
            with pytest.raises(IntegrationError) as exc_info:
                await N8NService().trigger("5548999998888", "Oi")
        assert exc_info.value.status_code == 400
