"""
Domain exceptions shared by services and routes
"""
from typing import Optional


class WebhookAuthError(Exception):
    """Raised when a webhook call carries a missing or wrong token"""


class FlowNotFoundError(Exception):
    """Raised when a flow id does not exist in ai_flows"""


class IntegrationError(Exception):
    """Raised when a third-party API answers with an error"""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        self.service = service
        self.message = message
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class LeadIntakeError(Exception):
    """Raised when an inbound lead payload cannot be accepted"""

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)
