"""
Contact import endpoint (Outlook CSV export)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from ...core.exceptions import WebhookAuthError
from ...services.contact_import import contact_import, EMPTY_CSV_ERROR
from ...services.lead_intake import lead_intake
from ..responses import error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["contacts"])


async def _read_csv(request: Request) -> str:
    """CSV from a JSON ``{"csv": ...}`` body or the raw text body"""
    raw = (await request.body()).decode("utf-8-sig", errors="replace")
    if "application/json" in request.headers.get("content-type", ""):
        payload = await request.json()
        if isinstance(payload, dict):
            return payload.get("csv") or ""
    return raw


@router.post("/import-contacts")
async def import_contacts(request: Request, token: Optional[str] = Query(None)):
    try:
        await lead_intake.verify_token(token)
        csv_text = await _read_csv(request)
        if not csv_text or not csv_text.strip():
            logger.error("[ContactImport] No CSV data provided in request")
            return error_response(400, EMPTY_CSV_ERROR)

        result = await contact_import.import_csv(csv_text)
        return result.model_dump(by_alias=True)
    except WebhookAuthError as e:
        return error_response(401, str(e), with_success=False)
    except Exception as e:
        logger.error(f"[ContactImport] Import failed: {e}")
        return error_response(500, str(e))
