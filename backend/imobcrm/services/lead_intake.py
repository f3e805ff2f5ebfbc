"""
Lead intake - portal and landing-page webhooks.

Both webhooks share the portal token stored in system_settings
(category ``portais``, key ``webhook_token``) and end with a
``lead_qualification`` row so the AI pre-service picks the lead up.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Any, Dict

from ..core.exceptions import WebhookAuthError, LeadIntakeError
from ..models import PortalLead, LandingPageLead, TransactionType, QualificationStatus
from .database import db
from .phone import normalize_phone

logger = logging.getLogger(__name__)

PORTAL_SETTINGS_CATEGORY = "portais"
WEBHOOK_TOKEN_KEY = "webhook_token"
DEFAULT_DEPARTMENT = "marketing"
LANDING_DEPARTMENT = "vendas"


def _setting_text(value: Any) -> Optional[str]:
    """Settings may be stored JSON-encoded ("\"true\"") or raw"""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            pass
    return None if value is None else str(value)


def _time_buckets(now: datetime) -> Dict[str, int]:
    # day_of_week: Sunday = 0
    return {"hour_of_day": now.hour, "day_of_week": now.isoweekday() % 7}


class LeadIntakeService:
    """Turns portal and landing-page payloads into contacts, logs and qualifications"""

    async def verify_token(self, token: Optional[str]) -> None:
        """
        Compare the ``?token=`` query parameter with the configured token.

        Raises:
            WebhookAuthError: missing, unset or different token
        """
        saved = await db.get_system_setting(PORTAL_SETTINGS_CATEGORY, WEBHOOK_TOKEN_KEY)
        if not token or saved in (None, "") or token != str(saved):
            logger.error("[LeadIntake] Invalid or missing webhook token")
            raise WebhookAuthError("Unauthorized")

    # ==================== PORTAL ====================

    @staticmethod
    def resolve_department(transaction_type: Optional[str], config: Dict[str, Any]) -> str:
        """SELL -> sell_department, RENT -> rent_department, otherwise marketing"""
        if transaction_type == TransactionType.SELL.value and config.get("sell_department"):
            return _setting_text(config["sell_department"])
        if transaction_type == TransactionType.RENT.value and config.get("rent_department"):
            return _setting_text(config["rent_department"])
        return DEFAULT_DEPARTMENT

    def _portal_log_fields(self, lead: PortalLead) -> Dict[str, Any]:
        return {
            "portal_origin": lead.lead_origin or "unknown",
            "origin_lead_id": lead.origin_lead_id,
            "origin_listing_id": lead.origin_listing_id,
            "client_listing_id": lead.client_listing_id,
            "contact_name": lead.name,
            "contact_email": lead.email,
            "message": lead.message,
            "temperature": lead.temperature,
            "transaction_type": lead.transaction_type,
            "raw_payload": lead.model_dump(by_alias=True, exclude_none=True),
        }

    async def process_portal_lead(self, lead: PortalLead) -> Dict[str, Any]:
        """
        Register a lead sent by a listing portal.

        Raises:
            LeadIntakeError: phone cannot be normalized (an error row is logged first)
        """
        phone = normalize_phone(lead.ddd, lead.phone, lead.phone_number)
        if not phone:
            await db.insert_portal_lead_log({
                **self._portal_log_fields(lead),
                "status": "error",
                "error_message": "Invalid phone number",
            })
            raise LeadIntakeError("Invalid phone number", 400)

        config = await db.get_settings_by_category(PORTAL_SETTINGS_CATEGORY)
        department_code = self.resolve_department(lead.transaction_type, config)
        origin = lead.lead_origin or "portal"

        contact = await db.get_contact_by_phone(phone)
        if contact:
            contact_id = contact["id"]
            if not contact.get("name") and lead.name:
                update = {"name": lead.name, "notes": f"Lead recebido do {origin}"}
                if lead.email:
                    update["email"] = lead.email
                await db.update_contact(contact_id, update)
        else:
            created = await db.create_contact({
                "phone": phone,
                "name": lead.name or None,
                "email": lead.email or None,
                "department_code": department_code,
                "contact_type": "lead",
                "status": "ativo",
                "notes": f"Lead recebido do {origin}. {lead.message or ''}",
            })
            contact_id = created["id"]

        default_list_id = _setting_text(config.get("default_list_id"))
        if default_list_id:
            await db.add_contact_to_group(default_list_id, contact_id)

        if (_setting_text(config.get("auto_create_conversation")) or "").lower() == "true":
            existing = await db.get_conversation_by_phone(phone, "open")
            if not existing:
                await db.create_conversation({
                    "phone_number": phone,
                    "contact_id": contact_id,
                    "department_code": department_code,
                    "status": "open",
                })

        now = datetime.now()
        portal_log = await db.insert_portal_lead_log({
            **self._portal_log_fields(lead),
            "contact_id": contact_id,
            "contact_phone": phone,
            "processed_at": datetime.now(timezone.utc).isoformat(),
            "status": "processed",
            **_time_buckets(now),
        })

        if portal_log and portal_log.get("id"):
            conversation = await db.get_conversation_by_phone(phone, "active")
            qualification = await db.create_lead_qualification({
                "phone_number": phone,
                "conversation_id": conversation["id"] if conversation else None,
                "portal_lead_id": portal_log["id"],
                "qualification_status": QualificationStatus.PENDING.value,
                "needs_reengagement": True,
                "detected_interest": lead.detected_interest,
            })
            if qualification and qualification.get("id"):
                await db.update_portal_lead_log(portal_log["id"], {"qualification_id": qualification["id"]})

        logger.info(f"[LeadIntake] Portal lead processed: contact={contact_id} phone={phone} portal={lead.lead_origin}")
        return {"success": True, "contactId": contact_id, "message": "Lead processed successfully"}

    # ==================== LANDING PAGE ====================

    async def process_landing_lead(self, lead: LandingPageLead) -> Dict[str, Any]:
        """
        Register a lead captured by a development landing page.

        Raises:
            LeadIntakeError: missing fields / bad phone (400), unknown development (404)
        """
        if not lead.phone or not lead.development_slug:
            raise LeadIntakeError("Missing required fields: phone, development_slug", 400)

        phone = normalize_phone(phone_number=lead.phone)
        if not phone:
            raise LeadIntakeError("Invalid phone number", 400)

        development = await db.get_active_development(lead.development_slug)
        if not development:
            logger.error(f"[LeadIntake] Development not found: {lead.development_slug}")
            raise LeadIntakeError(f"Development not found: {lead.development_slug}", 404)

        contact = await db.get_contact_by_phone(phone)
        if contact:
            contact_id = contact["id"]
            if not contact.get("name") and lead.name:
                update = {
                    "name": lead.name,
                    "notes": f"Lead de landing page - {development['name']}",
                    "department_code": LANDING_DEPARTMENT,
                }
                if lead.email:
                    update["email"] = lead.email
                await db.update_contact(contact_id, update)
        else:
            created = await db.create_contact({
                "phone": phone,
                "name": lead.name or None,
                "email": lead.email or None,
                "department_code": LANDING_DEPARTMENT,
                "contact_type": "lead",
                "status": "ativo",
                "notes": f"Lead de landing page - {development['name']}. {lead.message or ''}",
            })
            contact_id = created["id"]

        conversation = await db.get_conversation_by_phone(phone, "active")
        if conversation:
            conversation_id = conversation["id"]
        else:
            created_conversation = await db.create_conversation({
                "phone_number": phone,
                "contact_id": contact_id,
                "department_code": LANDING_DEPARTMENT,
                "status": "active",
            })
            conversation_id = created_conversation.get("id") if created_conversation else None

        portal_log = None
        try:
            portal_log = await db.insert_portal_lead_log({
                "portal_origin": lead.source or f"landing_{lead.development_slug}",
                "lead_source_type": "landing_page",
                "development_id": development["id"],
                "contact_id": contact_id,
                "contact_name": lead.name,
                "contact_phone": phone,
                "contact_email": lead.email,
                "message": lead.message,
                "transaction_type": TransactionType.SELL.value,
                "raw_payload": {**lead.model_dump(exclude_none=True), "utm": lead.utm()},
                "processed_at": datetime.now(timezone.utc).isoformat(),
                "status": "processed",
                **_time_buckets(datetime.now()),
            })
        except Exception as e:
            logger.error(f"[LeadIntake] Error creating portal log: {e}")

        if portal_log and portal_log.get("id"):
            await db.create_lead_qualification({
                "phone_number": phone,
                "conversation_id": conversation_id,
                "portal_lead_id": portal_log["id"],
                "qualification_status": QualificationStatus.PENDING.value,
                "needs_reengagement": True,
                "detected_interest": "compra",
            })

        logger.info(f"[LeadIntake] Landing page lead processed: {contact_id} -> {development['name']}")
        return {
            "success": True,
            "contact_id": contact_id,
            "conversation_id": conversation_id,
            "development": {"id": development["id"], "name": development["name"]},
            "message": "Lead processed successfully",
        }


lead_intake = LeadIntakeService()
