"""
Operator assistant and reengagement endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from ...core.exceptions import WebhookAuthError
from ...services.communicator import communicator
from ...services.lead_intake import lead_intake
from ...services.reengagement import reengagement
from ..responses import error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["assistant"])


@router.post("/ai-communicator")
async def ai_communicator(request: Request, token: Optional[str] = Query(None)):
    """
    Operator assistant.

    Body: {"action": "start_conversation" | "send_message" | "get_insights" |
    "execute_command", "userId", "conversationId", "message", "context"}
    """
    try:
        await lead_intake.verify_token(token)
        payload = await request.json()
        return await communicator.handle(payload.get("action"), payload)
    except WebhookAuthError as e:
        return error_response(401, str(e), with_success=False)
    except Exception as e:
        logger.error(f"[Communicator] Error: {e}")
        return error_response(500, str(e))


@router.post("/ai-reengagement")
async def ai_reengagement(token: Optional[str] = Query(None)):
    """Run one reengagement sweep"""
    try:
        await lead_intake.verify_token(token)
        report = await reengagement.run()
        return report.to_response()
    except WebhookAuthError as e:
        return error_response(401, str(e), with_success=False)
    except Exception as e:
        logger.error(f"[Reengagement] Sweep failed: {e}")
        return error_response(500, str(e))
