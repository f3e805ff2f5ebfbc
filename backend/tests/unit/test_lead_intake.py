"""
Tests for portal and landing-page lead intake.
"""
import pytest
from unittest.mock import AsyncMock, patch

from imobcrm.core.exceptions import WebhookAuthError, LeadIntakeError
from imobcrm.models import PortalLead, LandingPageLead
from imobcrm.services.lead_intake import LeadIntakeService


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.get_system_setting.return_value = "secret-token"
    db.get_settings_by_category.return_value = {
        "rent_department": "locacao",
        "sell_department": "vendas",
        "default_list_id": "group-1",
        "auto_create_conversation": "\"true\"",
    }
    db.get_contact_by_phone.return_value = None
    db.create_contact.return_value = {"id": "contact-1"}
    db.get_conversation_by_phone.return_value = None
    db.create_conversation.return_value = {"id": "conv-1"}
    db.insert_portal_lead_log.return_value = {"id": "log-1"}
    db.create_lead_qualification.return_value = {"id": "qual-1"}
    db.get_active_development.return_value = {"id": "dev-1", "name": "Residencial Jurerê"}
    return db


@pytest.fixture
def service(mock_db):
    with patch("imobcrm.services.lead_intake.db", mock_db):
        yield LeadIntakeService()


@pytest.fixture
def portal_lead():
    return PortalLead(**{
        "leadOrigin": "ZAP",
        "originListingId": "AP123",
        "name": "Ana",
        "email": "ana@email.com",
        "phoneNumber": "(48) 99999-8888",
        "transactionType": "RENT",
        "message": "Tenho interesse",
    })


class TestVerifyToken:
    """Tests for the shared webhook token"""

    @pytest.mark.asyncio
    async def test_valid_token(self, service, mock_db):
        await service.verify_token("secret-token")
        mock_db.get_system_setting.assert_awaited_once_with("portais", "webhook_token")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "wrong"])
    async def test_invalid_token(self, service, token):
        with pytest.raises(WebhookAuthError):
            await service.verify_token(token)

    @pytest.mark.asyncio
    async def test_numeric_token_setting(self, service, mock_db):
        """A JSON-decoded numeric setting still matches the query string"""
        mock_db.get_system_setting.return_value = 123456

        await service.verify_token("123456")

        with pytest.raises(WebhookAuthError):
            await service.verify_token("654321")

    @pytest.mark.asyncio
    async def test_unset_token_rejects_everything(self, service, mock_db):
        mock_db.get_system_setting.return_value = None
        with pytest.raises(WebhookAuthError):
            await service.verify_token("secret-token")


class TestPortalLead:
    """Tests for portal leads"""

    def test_resolve_department(self):
        config = {"sell_department": "vendas", "rent_department": "\"locacao\""}

        assert LeadIntakeService.resolve_department("SELL", config) == "vendas"
        assert LeadIntakeService.resolve_department("RENT", config) == "locacao"
        assert LeadIntakeService.resolve_department(None, config) == "marketing"
        assert LeadIntakeService.resolve_department("RENT", {}) == "marketing"

    @pytest.mark.asyncio
    async def test_new_contact_flow(self, service, mock_db, portal_lead):
        result = await service.process_portal_lead(portal_lead)

        assert result == {"success": True, "contactId": "contact-1", "message": "Lead processed successfully"}
        contact = mock_db.create_contact.await_args.args[0]
        assert contact["phone"] == "5548999998888"
        assert contact["department_code"] == "locacao"
        assert contact["contact_type"] == "lead"
        mock_db.add_contact_to_group.assert_awaited_once_with("group-1", "contact-1")
        mock_db.create_conversation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_qualification_linked_to_log(self, service, mock_db, portal_lead):
        await service.process_portal_lead(portal_lead)

        log = mock_db.insert_portal_lead_log.await_args.args[0]
        assert log["status"] == "processed"
        assert log["portal_origin"] == "ZAP"
        assert 0 <= log["day_of_week"] <= 6

        qualification = mock_db.create_lead_qualification.await_args.args[0]
        assert qualification["portal_lead_id"] == "log-1"
        assert qualification["detected_interest"] == "locacao"
        assert qualification["qualification_status"] == "pending"
        mock_db.update_portal_lead_log.assert_awaited_once_with("log-1", {"qualification_id": "qual-1"})

    @pytest.mark.asyncio
    async def test_existing_contact_without_name_updated(self, service, mock_db, portal_lead):
        mock_db.get_contact_by_phone.return_value = {"id": "contact-9", "name": None}

        result = await service.process_portal_lead(portal_lead)

        assert result["contactId"] == "contact-9"
        mock_db.create_contact.assert_not_awaited()
        mock_db.update_contact.assert_awaited_once_with(
            "contact-9", {"name": "Ana", "notes": "Lead recebido do ZAP", "email": "ana@email.com"}
        )

    @pytest.mark.asyncio
    async def test_invalid_phone_logged_and_rejected(self, service, mock_db):
        lead = PortalLead(name="Sem telefone", phoneNumber="123")

        with pytest.raises(LeadIntakeError) as exc_info:
            await service.process_portal_lead(lead)

        assert exc_info.value.status_code == 400
        assert mock_db.insert_portal_lead_log.await_args.args[0]["status"] == "error"
        mock_db.create_contact.assert_not_awaited()


class TestLandingLead:
    """Tests for landing page leads"""

    @pytest.mark.asyncio
    async def test_missing_fields(self, service):
        with pytest.raises(LeadIntakeError) as exc_info:
            await service.process_landing_lead(LandingPageLead(phone="48999998888"))
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_development(self, service, mock_db):
        mock_db.get_active_development.return_value = None

        with pytest.raises(LeadIntakeError) as exc_info:
            await service.process_landing_lead(LandingPageLead(phone="48999998888", development_slug="nada"))
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_landing_lead_processed(self, service, mock_db):
        lead = LandingPageLead(
            name="Carlos", phone="(48) 99999-8888", development_slug="jurere",
            utm_source="instagram", utm_campaign="lancamento",
        )

        result = await service.process_landing_lead(lead)

        assert result["contact_id"] == "contact-1"
        assert result["conversation_id"] == "conv-1"
        assert result["development"] == {"id": "dev-1", "name": "Residencial Jurerê"}

        log = mock_db.insert_portal_lead_log.await_args.args[0]
        assert log["portal_origin"] == "landing_jurere"
        assert log["lead_source_type"] == "landing_page"
        assert log["raw_payload"]["utm"]["source"] == "instagram"

        qualification = mock_db.create_lead_qualification.await_args.args[0]
        assert qualification["detected_interest"] == "compra"
        assert qualification["conversation_id"] == "conv-1"
