from .lead_webhooks import router as lead_webhooks_router
from .assistant import router as assistant_router
from .contacts import router as contacts_router
from .integrations import router as integrations_router, api_router as integrations_api_router
from .flow_executor import router as flow_executor_router
from .flows import router as flows_router
from .prompts import router as prompts_router

__all__ = [
    "lead_webhooks_router",
    "assistant_router",
    "contacts_router",
    "integrations_router",
    "integrations_api_router",
    "flow_executor_router",
    "flows_router",
    "prompts_router",
]
