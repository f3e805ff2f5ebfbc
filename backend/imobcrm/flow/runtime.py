"""
Flow Runtime - Runs published flows against live WhatsApp conversations.

Each inbound message either resumes the phone's open execution or starts a
new one on the department's active flow. The walk itself is done by
``FlowExecutor``; this module wires it to the database, the WhatsApp sender
and the LLM, and persists the execution row plus its step logs.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Any, Dict, List

from ..core.exceptions import FlowNotFoundError
from ..models import ActionNodeConfig, EscalationNodeConfig, IntegrationNodeConfig, ActionType, NodeType
from ..services.database import db, DatabaseService
from ..services.whatsapp import whatsapp, WhatsAppService
from ..services.llm import llm, LLMService
from .effects import FlowEffects, perform_http_call
from .executor import FlowExecutor
from .session import FlowSession, SessionStatus

logger = logging.getLogger(__name__)

DEFAULT_CONTACT_NAME = "Cliente"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LiveEffects(FlowEffects):
    """Side effects against the real CRM tables and WhatsApp"""

    inline_delays = True

    def __init__(
        self,
        database: Optional[DatabaseService] = None,
        sender: Optional[WhatsAppService] = None,
        llm_service: Optional[LLMService] = None
    ):
        self.db = database or db
        self.sender = sender or whatsapp
        self.llm = llm_service or llm

    async def _contact_id(self, session: FlowSession) -> Optional[str]:
        contact = await self.db.get_contact_by_phone(session.phone_number)
        return contact.get("id") if contact else None

    async def send_message(self, session: FlowSession, text: str) -> None:
        await self.sender.send_text(session.phone_number, text)

    async def run_action(self, session: FlowSession, config: ActionNodeConfig, fields: Dict[str, Any]) -> Dict[str, Any]:
        action_type = config.action_type

        if action_type == ActionType.UPDATE_VISTA:
            try:
                data = await self.sender.update_vista_property(
                    fields.get("propertyCode") or "", fields.get("status"), fields.get("value")
                )
                return {"success": True, "vista": data}
            except Exception as e:
                logger.error(f"[FlowRuntime] Vista update error: {e}")
                return {"success": False, "error": str(e)}

        if action_type in (ActionType.ADD_TAG, ActionType.REMOVE_TAG):
            contact_id = await self._contact_id(session) if config.tag_id else None
            if not contact_id:
                return {"success": False, "error": "Contato ou tag não encontrado"}
            if action_type == ActionType.ADD_TAG:
                await self.db.add_contact_tag(contact_id, config.tag_id)
            else:
                await self.db.remove_contact_tag(contact_id, config.tag_id)
            return {"success": True, "tagId": config.tag_id}

        if action_type == ActionType.UPDATE_CONTACT:
            updates = {}
            if fields.get("name"):
                updates["name"] = fields["name"]
            if fields.get("email"):
                updates["email"] = fields["email"]
            if fields.get("type"):
                updates["contact_type"] = fields["type"]
            if updates:
                await self.db.update_contact_by_phone(session.phone_number, updates)
            return {"success": True, "updated": updates}

        return {"success": False, "error": f"Ação não suportada: {action_type.value}"}

    async def escalate(self, session: FlowSession, config: EscalationNodeConfig) -> Dict[str, Any]:
        if session.conversation_id:
            await self.db.update_conversation(session.conversation_id, {
                "department_code": config.department,
                "status": "pending",
                "tags": [f"priority:{config.priority.value}", "escalated"],
            })
        await self.db.update_contact_by_phone(session.phone_number, {
            "ai_handling": False,
            "operator_takeover_at": _now_iso(),
        })
        return {"success": True}

    async def call_integration(self, session: FlowSession, config: IntegrationNodeConfig, body: Any) -> Dict[str, Any]:
        return await perform_http_call(config, body)

    async def close_conversation(self, session: FlowSession) -> None:
        if not session.conversation_id:
            return
        await self.db.update_conversation(session.conversation_id, {
            "status": "closed",
            "closed_at": _now_iso(),
            "closed_reason": "flow_completed",
        })

    async def detect_intent(self, text: str, intent: Optional[str]) -> bool:
        return await self.llm.detect_intent(text, intent)

    async def get_contact_tags(self, session: FlowSession) -> List[str]:
        contact_id = await self._contact_id(session)
        return await self.db.get_contact_tag_ids(contact_id) if contact_id else []

    async def wait(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class FlowRuntime:
    """
    Production entry point for inbound messages.

    Features:
    - One open execution per phone (running / waiting_response / waiting_input)
    - New executions start on the department's published flow
    - Execution row and step logs persisted after every message
    """

    def __init__(self, database: Optional[DatabaseService] = None, effects: Optional[FlowEffects] = None):
        self.db = database or db
        self.effects = effects or LiveEffects(database=self.db)

    async def handle_inbound(
        self,
        phone_number: str,
        message: str,
        conversation_id: Optional[str] = None,
        department_code: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Process one inbound message.

        Returns:
            {"success", "response", "escalated", "status"} or, when the
            department has no published flow, {"success": False, "message"}
        """
        logger.info(f"[FlowRuntime] Processing message from {phone_number}: \"{(message or '')[:50]}\"")

        row = await self.db.get_open_execution(phone_number)
        if row:
            flow = await self.db.get_flow(row["flow_id"])
            if flow is None:
                raise FlowNotFoundError(f"Flow not found: {row['flow_id']}")
            session = FlowSession.from_execution_row(row)
            is_new = False
        else:
            flow = await self.db.get_active_flow(department_code) if department_code else None
            if flow is None:
                logger.info(f"[FlowRuntime] No active flow for department: {department_code}")
                return {"success": False, "message": "No active flow found"}
            start_node = flow.get_start_node()
            if start_node is None:
                logger.info(f"[FlowRuntime] No start node found in flow {flow.id}")
                return {"success": False, "message": "No active flow found"}
            row = await self.db.create_execution({
                "conversation_id": conversation_id,
                "flow_id": flow.id,
                "phone_number": phone_number,
                "current_node_id": start_node.id,
                "status": SessionStatus.RUNNING.value,
                "variables": {},
                "context": {},
            })
            session = FlowSession.from_execution_row(row)
            session.current_node_id = None
            is_new = True
            logger.info(f"[FlowRuntime] Created new execution: {session.execution_id}")

        session.variables.update(await self._seed_variables(phone_number, message))
        executor = FlowExecutor(flow, effects=self.effects)
        first_log = len(session.execution_log)

        if is_new:
            await executor.start(session)
        elif session.is_waiting:
            await executor.send_message(session, message)
        else:
            await executor.resume(session)

        await self._persist(flow, session, first_log)

        bot_messages = session.bot_messages()
        return {
            "success": session.status != SessionStatus.ERROR,
            "response": bot_messages[-1] if bot_messages else "",
            "escalated": session.status == SessionStatus.ESCALATED,
            "status": self._row_status(flow, session),
        }

    async def _seed_variables(self, phone_number: str, message: str) -> Dict[str, Any]:
        contact = await self.db.get_contact_by_phone(phone_number)
        return {
            "nome": (contact or {}).get("name") or DEFAULT_CONTACT_NAME,
            "telefone": phone_number,
            "mensagem": message,
            "data_hoje": datetime.now().strftime("%d/%m/%Y"),
        }

    @staticmethod
    def _row_status(flow, session: FlowSession) -> str:
        """Session status as stored in flow_executions"""
        if session.status == SessionStatus.WAITING_INPUT:
            node = flow.get_node(session.current_node_id)
            if node is not None and node.type == NodeType.CONDITION.value:
                return "waiting_response"
            return "waiting_input"
        return session.status.value

    async def _persist(self, flow, session: FlowSession, first_log: int) -> None:
        status = self._row_status(flow, session)
        if status == "waiting_input" and "timeout" in session.context:
            # epoch milliseconds
            now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
            session.context["timeout_at"] = now_ms + int(session.context["timeout"]) * 1000
        else:
            session.context.pop("timeout_at", None)

        update: Dict[str, Any] = {
            "status": status,
            "current_node_id": session.current_node_id,
            "variables": session.variables,
            "context": session.context,
        }
        if session.is_terminal:
            update["completed_at"] = _now_iso()
        if session.error:
            update["context"] = {**session.context, "error": session.error}
        await self.db.update_execution(session.execution_id, update)

        await self.db.insert_execution_logs([
            {
                "execution_id": session.execution_id,
                "node_id": entry.node_id,
                "node_type": entry.node_type,
                "action_taken": entry.action,
                "input_data": entry.input,
                "output_data": entry.output,
                "duration_ms": entry.duration_ms,
            }
            for entry in session.execution_log[first_log:]
        ])


flow_runtime = FlowRuntime()
