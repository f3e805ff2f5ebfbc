"""
Third-party integration endpoints: ClickUp, N8N, C2S and ElevenLabs
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ...core.exceptions import IntegrationError
from ...models import C2SLead
from ...services.clickup import clickup
from ...services.n8n import n8n
from ...services.c2s import c2s
from ...services.elevenlabs import elevenlabs
from ..responses import error_response, integration_error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["integrations"])
api_router = APIRouter(prefix="/integrations", tags=["integrations"])


# ==================== ClickUp ====================

@router.post("/clickup-create-task")
async def clickup_create_task(request: Request):
    """Body: {"ticket": {...}, "listId": "..."}"""
    try:
        payload = await request.json()
        ticket, list_id = payload.get("ticket"), payload.get("listId")
        if not ticket or not list_id:
            return error_response(400, "Missing ticket data or listId", with_success=False)
        result = await clickup.create_task(ticket, list_id)
        return JSONResponse(status_code=201, content=result)
    except IntegrationError as e:
        return error_response(e.status_code or 500, e.message, with_success=False)
    except Exception as e:
        logger.error(f"[ClickUp] Error: {e}")
        return error_response(500, str(e), with_success=False)


@router.post("/clickup-update-task")
async def clickup_update_task(request: Request):
    """Body: {"ticketId": "...", "updates": {...}}"""
    try:
        payload = await request.json()
        ticket_id, updates = payload.get("ticketId"), payload.get("updates")
        if not ticket_id or not updates:
            return error_response(400, "Missing ticketId or updates data", with_success=False)
        return await clickup.update_task(ticket_id, updates)
    except IntegrationError as e:
        return error_response(e.status_code or 500, e.message, with_success=False)
    except Exception as e:
        logger.error(f"[ClickUp] Error: {e}")
        return error_response(500, str(e), with_success=False)


# ==================== N8N ====================

@router.post("/n8n-trigger")
async def n8n_trigger(request: Request):
    try:
        payload = await request.json()
        return await n8n.trigger(
            payload.get("phoneNumber"),
            payload.get("messageBody"),
            message_type=payload.get("messageType"),
            contact_name=payload.get("contactName"),
            contact_type=payload.get("contactType"),
            media_url=payload.get("mediaUrl"),
            media_type=payload.get("mediaType"),
        )
    except IntegrationError as e:
        return integration_error_response(e)
    except Exception as e:
        logger.error(f"[N8N] Error in trigger: {e}")
        return error_response(500, str(e))


# ==================== C2S ====================

@router.post("/c2s-create-lead")
async def c2s_create_lead(request: Request):
    try:
        lead = C2SLead.model_validate(await request.json())
        return await c2s.create_lead(lead)
    except IntegrationError as e:
        return integration_error_response(e)
    except ValidationError as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error(f"[C2S] Error: {e}")
        return error_response(500, str(e) or "Erro interno")


# ==================== ElevenLabs ====================

@api_router.get("/elevenlabs/voices")
async def list_elevenlabs_voices():
    try:
        return await elevenlabs.list_voices()
    except IntegrationError as e:
        return integration_error_response(e)
