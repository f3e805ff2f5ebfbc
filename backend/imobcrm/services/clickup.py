"""
ClickUp service - mirrors CRM tickets as ClickUp tasks
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Any, Dict

import httpx

from ..core.config import settings
from ..core.exceptions import IntegrationError
from .database import db

logger = logging.getLogger(__name__)

CLICKUP_API_URL = "https://api.clickup.com/api/v2"

# Ticket priority -> ClickUp priority (1 urgent .. 4 low)
PRIORITY_MAP = {
    "critica": 1,
    "alta": 2,
    "media": 3,
    "baixa": 4,
}


class ClickUpService:
    """Creates and updates ClickUp tasks for tickets"""

    def __init__(self, api_token: Optional[str] = None, base_url: str = CLICKUP_API_URL):
        self.api_token = api_token or settings.CLICKUP_API_TOKEN
        self.base_url = base_url

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": self.api_token or "",
            "Content-Type": "application/json",
        }

    def _require_token(self) -> None:
        if not self.api_token:
            raise IntegrationError("clickup", "ClickUp API token not configured", 500)

    @staticmethod
    def build_description(ticket: Dict[str, Any], assigned_name: Optional[str] = None) -> str:
        """Markdown block with every ticket detail"""
        lines = [
            f"**Descrição:** {ticket.get('description') or ''}",
            "",
            "**Detalhes do Contato:**",
            f"• Telefone: {ticket.get('phone') or ''}",
            f"• Email: {ticket.get('email') or 'Não informado'}",
            "",
            "**Outras Informações:**",
            f"• Último Contato: {ticket.get('last_contact') or ''}",
            f"• Fonte: {ticket.get('source') or ''}",
            f"• Categoria: {ticket.get('category') or ''}",
            f"• Estágio: {ticket.get('stage') or ''}",
        ]
        if assigned_name:
            lines.append(f"• Responsável: {assigned_name}")
        return "\n".join(lines)

    @staticmethod
    def build_task(ticket: Dict[str, Any], assigned_name: Optional[str] = None) -> Dict[str, Any]:
        return {
            "name": ticket.get("title"),
            "description": ClickUpService.build_description(ticket, assigned_name),
            "priority": PRIORITY_MAP.get(ticket.get("priority") or ""),
            "tags": [t for t in (ticket.get("category"), ticket.get("stage"), ticket.get("priority")) if t],
        }

    async def create_task(self, ticket: Dict[str, Any], list_id: str) -> Dict[str, Any]:
        """
        Create a task for a ticket and record the link in clickup_integration.

        Raises:
            IntegrationError: unknown list or ClickUp API failure
        """
        self._require_token()

        assigned_name = None
        if ticket.get("assigned_to"):
            assigned_name = await db.get_profile_name(ticket["assigned_to"]) or ticket["assigned_to"]

        task_data = self.build_task(ticket, assigned_name)
        logger.info(f"[ClickUp] Creating task for ticket {ticket.get('id')} in list {list_id}")

        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            validate = await client.get(f"{self.base_url}/list/{list_id}", headers=self._get_headers())
            if validate.status_code >= 400:
                raise IntegrationError(
                    "clickup",
                    f"Lista {list_id} não encontrada no ClickUp. Verifique a configuração.",
                    400
                )

            response = await client.post(
                f"{self.base_url}/list/{list_id}/task",
                json=task_data,
                headers=self._get_headers()
            )

        if response.status_code >= 400:
            logger.error(f"[ClickUp] API error: {response.text[:500]}")
            raise IntegrationError("clickup", f"Failed to create ClickUp task: {response.text}", response.status_code)

        task = response.json()
        logger.info(f"[ClickUp] Task created: {task.get('id')}")

        result = {"success": True, "clickup_task": task, "integration_id": task.get("id")}
        try:
            await db.insert_clickup_link({
                "ticket_id": ticket.get("id"),
                "clickup_task_id": task.get("id"),
                "clickup_list_id": list_id,
                "sync_status": "synced",
                "last_sync": datetime.now(timezone.utc).isoformat(),
            })
        except Exception as e:
            logger.error(f"[ClickUp] Task created but tracking record failed: {e}")
            result["warning"] = "Task created in ClickUp but failed to store tracking record"
        return result

    async def update_task(self, ticket_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Push ticket changes to the linked task.

        Status changes are not forwarded; ClickUp lists use their own statuses.
        """
        self._require_token()

        link = await db.get_clickup_link(ticket_id)
        if not link:
            raise IntegrationError("clickup", "Integration record not found for ticket", 404)

        update_data: Dict[str, Any] = {}
        if updates.get("title"):
            update_data["name"] = updates["title"]
        if updates.get("description"):
            update_data["description"] = updates["description"]
            if updates.get("assignedTo"):
                update_data["description"] += f"\n\n**Responsável:** {updates['assignedTo']}"
        if updates.get("priority") in PRIORITY_MAP:
            update_data["priority"] = PRIORITY_MAP[updates["priority"]]

        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.put(
                f"{self.base_url}/task/{link['clickup_task_id']}",
                json=update_data,
                headers=self._get_headers()
            )

        now = datetime.now(timezone.utc).isoformat()
        if response.status_code >= 400:
            await db.update_clickup_link(ticket_id, {
                "sync_status": "error",
                "error_message": f"Failed to update ClickUp task: {response.text}",
                "last_sync": now,
            })
            raise IntegrationError("clickup", f"Failed to update ClickUp task: {response.text}", response.status_code)

        await db.update_clickup_link(ticket_id, {"sync_status": "synced", "error_message": None, "last_sync": now})
        return {"success": True, "clickup_task": response.json()}


clickup = ClickUpService()
