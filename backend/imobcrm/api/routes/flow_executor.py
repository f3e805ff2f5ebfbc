"""
Production flow runtime endpoint (called by the WhatsApp inbound pipeline)
"""
import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from ...flow import flow_runtime
from ..responses import error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["flow-executor"])


class InboundMessage(BaseModel):
    phone_number: str
    message: str = ""
    conversation_id: Optional[str] = None
    department_code: Optional[str] = None


@router.post("/flow-executor")
async def flow_executor(request: InboundMessage):
    try:
        return await flow_runtime.handle_inbound(
            request.phone_number,
            request.message,
            conversation_id=request.conversation_id,
            department_code=request.department_code,
        )
    except Exception as e:
        logger.error(f"[FlowRuntime] Error: {e}")
        return error_response(500, str(e))
