"""
JSON error bodies shared by the function-style endpoints
"""
from typing import Optional

from fastapi.responses import JSONResponse

from ..core.exceptions import IntegrationError


def error_response(status_code: int, message: str, with_success: bool = True) -> JSONResponse:
    """``{"success": false, "error": message}`` (or just ``{"error"}`` for webhooks)"""
    body = {"success": False, "error": message} if with_success else {"error": message}
    return JSONResponse(status_code=status_code, content=body)


def integration_error_response(error: IntegrationError, default_status: Optional[int] = 500) -> JSONResponse:
    return error_response(error.status_code or default_status, error.message)
