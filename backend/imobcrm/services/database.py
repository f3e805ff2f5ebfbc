"""
Database service - every table read and written by the backend
"""
import json
import logging
from typing import Optional, Any, Dict, List
from datetime import datetime, timezone

from ..core.supabase_client import supabase
from ..models import Flow, LeadToReengage

logger = logging.getLogger(__name__)

# Nomes das tabelas
FLOWS_TABLE = "ai_flows"
FLOW_EXECUTIONS_TABLE = "flow_executions"
FLOW_EXECUTION_LOGS_TABLE = "flow_execution_logs"
SYSTEM_SETTINGS_TABLE = "system_settings"
CONTACTS_TABLE = "contacts"
CONTACT_GROUPS_TABLE = "contact_groups"
CONTACT_CONTRACTS_TABLE = "contact_contracts"
CONTACT_TAG_ASSIGNMENTS_TABLE = "contact_tag_assignments"
CONVERSATIONS_TABLE = "conversations"
MESSAGES_TABLE = "messages"
PORTAL_LEADS_LOG_TABLE = "portal_leads_log"
LEAD_QUALIFICATION_TABLE = "lead_qualification"
DEVELOPMENTS_TABLE = "developments"
AI_BEHAVIOR_CONFIG_TABLE = "ai_behavior_config"
AI_CONVERSATIONS_TABLE = "ai_conversations"
TICKETS_TABLE = "tickets"
C2S_INTEGRATION_TABLE = "c2s_integration"
CLICKUP_INTEGRATION_TABLE = "clickup_integration"
CONVERSATION_STATES_TABLE = "conversation_states"
PROFILES_TABLE = "profiles"

# Execution statuses that can still receive messages
OPEN_EXECUTION_STATUSES = ["running", "waiting_response", "waiting_input"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first(response) -> Optional[Dict[str, Any]]:
    if response.data and len(response.data) > 0:
        return response.data[0]
    return None


class DatabaseService:
    """Database service for all CRUD operations"""

    # ==================== FLOWS ====================

    async def list_flows(self) -> list[Flow]:
        """List flows, most recently updated first"""
        response = supabase.table(FLOWS_TABLE).select("*").order("updated_at", desc=True).execute()
        return [Flow.from_row(r) for r in response.data] if response.data else []

    async def get_flow(self, flow_id: str) -> Optional[Flow]:
        """Get flow by ID"""
        response = supabase.table(FLOWS_TABLE).select("*").eq("id", flow_id).limit(1).execute()
        row = _first(response)
        return Flow.from_row(row) if row else None

    async def get_active_flow(self, department_code: str) -> Optional[Flow]:
        """Get the published flow of a department"""
        response = (
            supabase.table(FLOWS_TABLE)
            .select("*")
            .eq("department_code", department_code)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        row = _first(response)
        return Flow.from_row(row) if row else None

    async def create_flow(self, data: Dict[str, Any]) -> Flow:
        """Insert a new flow row"""
        response = supabase.table(FLOWS_TABLE).insert(data).execute()
        return Flow.from_row(response.data[0])

    async def update_flow(self, flow_id: str, data: Dict[str, Any]) -> Optional[Flow]:
        """Update a flow row and bump updated_at"""
        payload = {**data, "updated_at": _now_iso()}
        response = supabase.table(FLOWS_TABLE).update(payload).eq("id", flow_id).execute()
        row = _first(response)
        return Flow.from_row(row) if row else None

    async def deactivate_department_flows(self, department_code: str, except_flow_id: str) -> None:
        """Clear is_active on every other flow of the department"""
        (
            supabase.table(FLOWS_TABLE)
            .update({"is_active": False})
            .eq("department_code", department_code)
            .neq("id", except_flow_id)
            .execute()
        )

    async def delete_flow(self, flow_id: str) -> bool:
        """Hard-delete a flow"""
        response = supabase.table(FLOWS_TABLE).delete().eq("id", flow_id).execute()
        return bool(response.data)

    # ==================== FLOW EXECUTIONS ====================

    async def get_open_execution(self, phone_number: str) -> Optional[Dict[str, Any]]:
        """Latest execution of a phone that is still waiting or running"""
        response = (
            supabase.table(FLOW_EXECUTIONS_TABLE)
            .select("*")
            .eq("phone_number", phone_number)
            .in_("status", OPEN_EXECUTION_STATUSES)
            .order("started_at", desc=True)
            .limit(1)
            .execute()
        )
        return _first(response)

    async def create_execution(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = supabase.table(FLOW_EXECUTIONS_TABLE).insert(data).execute()
        return response.data[0]

    async def update_execution(self, execution_id: str, data: Dict[str, Any]) -> None:
        supabase.table(FLOW_EXECUTIONS_TABLE).update(data).eq("id", execution_id).execute()

    async def insert_execution_logs(self, rows: List[Dict[str, Any]]) -> None:
        """Append execution log rows - failures are logged, never raised"""
        if not rows:
            return
        try:
            supabase.table(FLOW_EXECUTION_LOGS_TABLE).insert(rows).execute()
        except Exception as e:
            logger.error(f"Error writing flow execution logs: {e}")

    # ==================== SYSTEM SETTINGS ====================

    async def get_system_setting(self, category: Optional[str], key: str) -> Optional[Any]:
        """Read one setting (any category when None); JSON-encoded string values are decoded"""
        query = supabase.table(SYSTEM_SETTINGS_TABLE).select("setting_value").eq("setting_key", key)
        if category:
            query = query.eq("setting_category", category)
        response = query.limit(1).execute()
        row = _first(response)
        if not row:
            return None
        value = row.get("setting_value")
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value

    async def get_settings_by_category(self, category: str) -> Dict[str, Any]:
        """All settings of a category as a key -> value dict"""
        response = (
            supabase.table(SYSTEM_SETTINGS_TABLE)
            .select("setting_key, setting_value")
            .eq("setting_category", category)
            .execute()
        )
        return {r["setting_key"]: r.get("setting_value") for r in (response.data or [])}

    async def get_ai_behavior_config(self) -> Optional[Dict[str, Any]]:
        response = supabase.table(AI_BEHAVIOR_CONFIG_TABLE).select("*").limit(1).execute()
        return _first(response)

    # ==================== CONTACTS ====================

    async def get_contact_by_phone(self, phone: str) -> Optional[Dict[str, Any]]:
        response = supabase.table(CONTACTS_TABLE).select("*").eq("phone", phone).limit(1).execute()
        return _first(response)

    async def create_contact(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = supabase.table(CONTACTS_TABLE).insert(data).execute()
        return response.data[0]

    async def update_contact(self, contact_id: str, data: Dict[str, Any]) -> None:
        supabase.table(CONTACTS_TABLE).update(data).eq("id", contact_id).execute()

    async def update_contact_by_phone(self, phone: str, data: Dict[str, Any]) -> None:
        supabase.table(CONTACTS_TABLE).update(data).eq("phone", phone).execute()

    async def get_contact_tag_ids(self, contact_id: str) -> list[str]:
        response = (
            supabase.table(CONTACT_TAG_ASSIGNMENTS_TABLE)
            .select("tag_id")
            .eq("contact_id", contact_id)
            .execute()
        )
        return [r["tag_id"] for r in (response.data or [])]

    async def add_contact_tag(self, contact_id: str, tag_id: str) -> None:
        (
            supabase.table(CONTACT_TAG_ASSIGNMENTS_TABLE)
            .upsert(
                {"contact_id": contact_id, "tag_id": tag_id},
                on_conflict="contact_id,tag_id",
                ignore_duplicates=True,
            )
            .execute()
        )

    async def remove_contact_tag(self, contact_id: str, tag_id: str) -> None:
        (
            supabase.table(CONTACT_TAG_ASSIGNMENTS_TABLE)
            .delete()
            .eq("contact_id", contact_id)
            .eq("tag_id", tag_id)
            .execute()
        )

    async def add_contact_to_group(self, group_id: str, contact_id: str) -> bool:
        """Append a contact to a contact list; returns False when already a member"""
        response = supabase.table(CONTACT_GROUPS_TABLE).select("contact_ids").eq("id", group_id).limit(1).execute()
        group = _first(response)
        if not group:
            logger.warning(f"Contact group {group_id} not found")
            return False
        contact_ids = group.get("contact_ids") or []
        if contact_id in contact_ids:
            return False
        supabase.table(CONTACT_GROUPS_TABLE).update({
            "contact_ids": [*contact_ids, contact_id],
            "updated_at": _now_iso()
        }).eq("id", group_id).execute()
        return True

    async def insert_contract(self, data: Dict[str, Any]) -> None:
        supabase.table(CONTACT_CONTRACTS_TABLE).insert(data).execute()

    async def upsert_contract(self, data: Dict[str, Any]) -> None:
        supabase.table(CONTACT_CONTRACTS_TABLE).upsert(data).execute()

    # ==================== CONVERSATIONS ====================

    async def get_conversation_by_phone(self, phone: str, status: str) -> Optional[Dict[str, Any]]:
        response = (
            supabase.table(CONVERSATIONS_TABLE)
            .select("*")
            .eq("phone_number", phone)
            .eq("status", status)
            .limit(1)
            .execute()
        )
        return _first(response)

    async def create_conversation(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = supabase.table(CONVERSATIONS_TABLE).insert(data).execute()
        return response.data[0]

    async def update_conversation(self, conversation_id: str, data: Dict[str, Any]) -> None:
        supabase.table(CONVERSATIONS_TABLE).update(data).eq("id", conversation_id).execute()

    async def get_conversation_department(self, conversation_id: str) -> Optional[str]:
        response = (
            supabase.table(CONVERSATIONS_TABLE)
            .select("department_code")
            .eq("id", conversation_id)
            .limit(1)
            .execute()
        )
        row = _first(response)
        return row.get("department_code") if row else None

    # ==================== PORTAL LEADS ====================

    async def insert_portal_lead_log(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = supabase.table(PORTAL_LEADS_LOG_TABLE).insert(data).execute()
        return _first(response)

    async def update_portal_lead_log(self, log_id: str, data: Dict[str, Any]) -> None:
        supabase.table(PORTAL_LEADS_LOG_TABLE).update(data).eq("id", log_id).execute()

    async def get_portal_lead_log(self, log_id: str) -> Optional[Dict[str, Any]]:
        response = (
            supabase.table(PORTAL_LEADS_LOG_TABLE)
            .select("contact_name, origin_listing_id, message, transaction_type")
            .eq("id", log_id)
            .limit(1)
            .execute()
        )
        return _first(response)

    async def get_active_development(self, slug: str) -> Optional[Dict[str, Any]]:
        response = (
            supabase.table(DEVELOPMENTS_TABLE)
            .select("id, name, neighborhood")
            .eq("slug", slug)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        return _first(response)

    # ==================== LEAD QUALIFICATION ====================

    async def create_lead_qualification(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = supabase.table(LEAD_QUALIFICATION_TABLE).insert(data).execute()
        return _first(response)

    async def get_leads_needing_reengagement(self, cutoff_iso: str, limit: int = 50) -> list[LeadToReengage]:
        """Qualifying leads silent since before the cutoff, oldest first"""
        response = (
            supabase.table(LEAD_QUALIFICATION_TABLE)
            .select("*")
            .eq("needs_reengagement", True)
            .eq("qualification_status", "qualifying")
            .lt("reengagement_attempts", 3)
            .lt("last_interaction_at", cutoff_iso)
            .order("last_interaction_at")
            .limit(limit)
            .execute()
        )
        return [LeadToReengage(**r) for r in response.data] if response.data else []

    async def update_lead_qualification(self, qualification_id: str, data: Dict[str, Any]) -> None:
        supabase.table(LEAD_QUALIFICATION_TABLE).update(data).eq("id", qualification_id).execute()

    # ==================== AI ASSISTANT ====================

    async def create_ai_conversation(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = supabase.table(AI_CONVERSATIONS_TABLE).insert(data).execute()
        return response.data[0]

    async def get_ai_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        response = supabase.table(AI_CONVERSATIONS_TABLE).select("*").eq("id", conversation_id).limit(1).execute()
        return _first(response)

    async def update_ai_conversation(self, conversation_id: str, data: Dict[str, Any]) -> None:
        supabase.table(AI_CONVERSATIONS_TABLE).update(data).eq("id", conversation_id).execute()

    async def count_rows(self, table: str, filters: Optional[Dict[str, Any]] = None, since: Optional[str] = None) -> int:
        """Exact row count with optional equality filters and created_at lower bound"""
        query = supabase.table(table).select("id", count="exact")
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if since:
            query = query.gte("created_at", since)
        response = query.limit(1).execute()
        return response.count or 0

    async def recent_messages(self, limit: int = 20) -> list[Dict[str, Any]]:
        response = supabase.table(MESSAGES_TABLE).select("*").order("created_at", desc=True).limit(limit).execute()
        return response.data or []

    async def create_ticket(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = supabase.table(TICKETS_TABLE).insert(data).execute()
        return _first(response)

    # ==================== INTEGRATIONS ====================

    async def record_c2s_result(self, data: Dict[str, Any]) -> None:
        try:
            supabase.table(C2S_INTEGRATION_TABLE).insert(data).execute()
        except Exception as e:
            logger.error(f"Error recording C2S result: {e}")

    async def insert_clickup_link(self, data: Dict[str, Any]) -> None:
        supabase.table(CLICKUP_INTEGRATION_TABLE).insert(data).execute()

    async def get_clickup_link(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        response = (
            supabase.table(CLICKUP_INTEGRATION_TABLE)
            .select("clickup_task_id, clickup_list_id")
            .eq("ticket_id", ticket_id)
            .limit(1)
            .execute()
        )
        return _first(response)

    async def update_clickup_link(self, ticket_id: str, data: Dict[str, Any]) -> None:
        try:
            supabase.table(CLICKUP_INTEGRATION_TABLE).update(data).eq("ticket_id", ticket_id).execute()
        except Exception as e:
            logger.error(f"Error updating ClickUp sync status: {e}")

    async def get_profile_name(self, user_id: str) -> Optional[str]:
        response = supabase.table(PROFILES_TABLE).select("full_name").eq("user_id", user_id).limit(1).execute()
        row = _first(response)
        return row.get("full_name") if row else None

    async def upsert_conversation_state(self, data: Dict[str, Any]) -> None:
        """Mark a phone as handled by the N8N agent"""
        try:
            supabase.table(CONVERSATION_STATES_TABLE).upsert(data, on_conflict="phone_number").execute()
        except Exception as e:
            logger.error(f"Error updating conversation state: {e}")


# Singleton instance
db = DatabaseService()
