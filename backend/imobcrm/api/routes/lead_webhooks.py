"""
Lead intake webhooks (listing portals and development landing pages)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from pydantic import ValidationError

from ...core.exceptions import WebhookAuthError, LeadIntakeError
from ...models import PortalLead, LandingPageLead
from ...services.lead_intake import lead_intake
from ..responses import error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["lead-webhooks"])


@router.post("/portal-leads-webhook")
async def portal_leads_webhook(request: Request, token: Optional[str] = Query(None)):
    """Receive a lead pushed by a listing portal"""
    try:
        await lead_intake.verify_token(token)
        payload = await request.json()
        logger.info(f"[PortalWebhook] Lead received from {payload.get('leadOrigin')}")
        lead = PortalLead.model_validate(payload)
        return await lead_intake.process_portal_lead(lead)
    except WebhookAuthError as e:
        return error_response(401, str(e), with_success=False)
    except LeadIntakeError as e:
        return error_response(e.status_code, str(e), with_success=False)
    except (ValidationError, ValueError) as e:
        return error_response(400, f"Invalid payload: {e}", with_success=False)


@router.post("/landing-page-webhook")
async def landing_page_webhook(request: Request, token: Optional[str] = Query(None)):
    """Receive a lead captured by a development landing page"""
    try:
        await lead_intake.verify_token(token)
        payload = await request.json()
        lead = LandingPageLead.model_validate(payload)
        return await lead_intake.process_landing_lead(lead)
    except WebhookAuthError as e:
        return error_response(401, str(e), with_success=False)
    except LeadIntakeError as e:
        return error_response(e.status_code, str(e), with_success=False)
    except (ValidationError, ValueError) as e:
        return error_response(400, f"Invalid payload: {e}", with_success=False)
