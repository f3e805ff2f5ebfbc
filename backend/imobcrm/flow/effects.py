"""
Flow side effects - what a node does to the outside world.

The walker never touches the database or the network directly: it calls a
``FlowEffects`` backend. ``SimulatedEffects`` backs the test panel (mocked
integrations, no real waits); the live backend used by the production runtime
lives in ``flow.runtime``.
"""
import logging
from typing import Optional, Any, Dict, List

import httpx

from ..core.config import settings
from ..models.flow import (
    ActionNodeConfig, EscalationNodeConfig, IntegrationNodeConfig
)
from .session import FlowSession

logger = logging.getLogger(__name__)


class FlowEffects:
    """Interface of a side-effect backend"""

    # Whether delay nodes actually wait (and long delays pause the session)
    inline_delays: bool = False

    async def send_message(self, session: FlowSession, text: str) -> None:
        raise NotImplementedError

    async def run_action(self, session: FlowSession, config: ActionNodeConfig, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Run update_vista / add_tag / remove_tag / update_contact"""
        raise NotImplementedError

    async def escalate(self, session: FlowSession, config: EscalationNodeConfig) -> Dict[str, Any]:
        raise NotImplementedError

    async def call_integration(self, session: FlowSession, config: IntegrationNodeConfig, body: Any) -> Dict[str, Any]:
        """Returns ``{"status": int, "data": Any}``"""
        raise NotImplementedError

    async def close_conversation(self, session: FlowSession) -> None:
        raise NotImplementedError

    async def detect_intent(self, text: str, intent: Optional[str]) -> bool:
        raise NotImplementedError

    async def get_contact_tags(self, session: FlowSession) -> List[str]:
        raise NotImplementedError

    async def wait(self, seconds: float) -> None:
        return None


async def perform_http_call(config: IntegrationNodeConfig, body: Any) -> Dict[str, Any]:
    """Call an integration node URL and return status plus decoded body"""
    method = (config.method or "POST").upper()
    headers = {"Content-Type": "application/json", **config.headers}
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
        if method == "GET":
            response = await client.request(method, config.url, headers=headers)
        elif isinstance(body, (dict, list)):
            response = await client.request(method, config.url, headers=headers, json=body)
        else:
            response = await client.request(method, config.url, headers=headers, content=body or "{}")
    try:
        data = response.json()
    except ValueError:
        data = response.text
    return {"status": response.status_code, "data": data}


class SimulatedEffects(FlowEffects):
    """
    Side effects for the flow test panel.

    Nothing leaves the process unless ``real_integrations`` is set, in which
    case integration nodes perform their HTTP call. Every call is recorded in
    ``calls`` so tests and the UI can inspect what would have happened.
    """

    inline_delays = False

    def __init__(
        self,
        contact_tags: Optional[List[str]] = None,
        real_integrations: bool = False,
        intent_answers: Optional[Dict[str, bool]] = None
    ):
        self.contact_tags = list(contact_tags or [])
        self.real_integrations = real_integrations
        self.intent_answers = dict(intent_answers or {})
        self.calls: List[Dict[str, Any]] = []

    def _record(self, kind: str, **payload) -> Dict[str, Any]:
        entry = {"type": kind, **payload}
        self.calls.append(entry)
        return entry

    async def send_message(self, session: FlowSession, text: str) -> None:
        self._record("send_message", to=session.phone_number, text=text)

    async def run_action(self, session: FlowSession, config: ActionNodeConfig, fields: Dict[str, Any]) -> Dict[str, Any]:
        self._record("action", action_type=config.action_type.value, fields=fields)
        if config.action_type.value == "add_tag" and config.tag_id and config.tag_id not in self.contact_tags:
            self.contact_tags.append(config.tag_id)
        elif config.action_type.value == "remove_tag" and config.tag_id in self.contact_tags:
            self.contact_tags.remove(config.tag_id)
        return {"simulated": True, "actionType": config.action_type.value, **fields}

    async def escalate(self, session: FlowSession, config: EscalationNodeConfig) -> Dict[str, Any]:
        self._record("escalation", department=config.department, priority=config.priority.value)
        return {"simulated": True, "department": config.department}

    async def call_integration(self, session: FlowSession, config: IntegrationNodeConfig, body: Any) -> Dict[str, Any]:
        self._record("integration", url=config.url, method=config.method, body=body)
        if self.real_integrations and config.url:
            return await perform_http_call(config, body)
        return {"status": 200, "data": {"simulated": True, "url": config.url}}

    async def close_conversation(self, session: FlowSession) -> None:
        self._record("close_conversation", conversation_id=session.conversation_id)

    async def detect_intent(self, text: str, intent: Optional[str]) -> bool:
        if not intent:
            return False
        if intent in self.intent_answers:
            return self.intent_answers[intent]
        return intent.strip().lower() in (text or "").lower()

    async def get_contact_tags(self, session: FlowSession) -> List[str]:
        return list(self.contact_tags)
