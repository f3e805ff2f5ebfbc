"""
Integration tests for the HTTP surface.

The FastAPI app is exercised through TestClient with the database and the
third-party services patched at the route modules.
"""
import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from imobcrm.api.main import create_app
from imobcrm.core.exceptions import WebhookAuthError, LeadIntakeError, IntegrationError
from imobcrm.models import Flow, ImportResult, ReengagementReport
from imobcrm.services.contact_import import EMPTY_CSV_ERROR

from tests.conftest import node


@pytest.fixture
def client():
    return TestClient(create_app())


@pytest.fixture
def flows_db():
    with patch("imobcrm.api.routes.flows.db") as mock_db:
        for name in (
            "list_flows", "get_flow", "create_flow", "update_flow",
            "deactivate_department_flows", "delete_flow",
        ):
            setattr(mock_db, name, AsyncMock())
        mock_db.create_flow.side_effect = lambda row: Flow.from_row({**row, "id": "flow-new"})
        yield mock_db


@pytest.fixture
def saved_flow(keyword_flow):
    return Flow(id="flow-1", name="Triagem", department="locacao", **keyword_flow)


class TestHealth:
    """Tests for service endpoints"""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"


class TestFlowRoutes:
    """Tests for /api/flows"""

    def test_list_templates(self, client):
        assert len(client.get("/api/flows/templates").json()) == 4
        by_category = client.get("/api/flows/templates", params={"category": "confirmacao"}).json()
        assert [t["id"] for t in by_category] == ["confirmacao-imovel"]

    def test_validate(self, client, keyword_flow):
        assert client.post("/api/flows/validate", json=keyword_flow).json() == {
            "valid": True, "errors": [], "warnings": [],
        }

        response = client.post("/api/flows/validate", json={"nodes": [], "edges": []}).json()
        assert response["valid"] is False
        assert response["errors"][0]["code"] == "NO_START"

    def test_test_panel_walks_messages(self, client, keyword_flow):
        response = client.post("/api/flows/test", json={
            **keyword_flow,
            "messages": ["quero alugar", "ignorada"],
            "variables": {"nome": "Ana"},
        })
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "completed"
        assert body["variables"]["nome"] == "Ana"
        assert body["variables"]["mensagem"] == "quero alugar"
        assert "message-aluguel" in body["visitedNodes"]
        assert [c["type"] for c in body["effects"]].count("send_message") == 3

    def test_test_saved_flow(self, client, flows_db, saved_flow):
        flows_db.get_flow.return_value = saved_flow

        body = client.post("/api/flows/test", json={"flowId": "flow-1"}).json()

        assert body["flowId"] == "flow-1"
        assert body["status"] == "waiting_input"

    def test_get_missing_flow(self, client, flows_db):
        flows_db.get_flow.return_value = None

        response = client.get("/api/flows/nao-existe")

        assert response.status_code == 404
        assert response.json() == {"detail": "Flow not found"}

    def test_list_flows(self, client, flows_db, saved_flow):
        flows_db.list_flows.return_value = [saved_flow]

        body = client.get("/api/flows").json()

        assert [f["id"] for f in body] == ["flow-1"]
        assert body[0]["isActive"] is False

    def test_create_from_template(self, client, flows_db):
        response = client.post("/api/flows", json={
            "name": "Confirmação",
            "department": "marketing",
            "templateId": "confirmacao-imovel",
        })

        assert response.status_code == 201
        row = flows_db.create_flow.await_args.args[0]
        assert row["is_active"] is False
        assert row["department_code"] == "marketing"
        assert row["nodes"][0]["id"] == "start-1"
        assert response.json()["id"] == "flow-new"

    def test_create_unknown_template(self, client, flows_db):
        response = client.post("/api/flows", json={"name": "X", "department": "vendas", "templateId": "nada"})

        assert response.status_code == 404
        flows_db.create_flow.assert_not_awaited()

    def test_save_only_given_fields(self, client, flows_db, saved_flow):
        flows_db.get_flow.return_value = saved_flow
        flows_db.update_flow.return_value = saved_flow

        client.put("/api/flows/flow-1", json={"name": "Triagem v2"})

        assert flows_db.update_flow.await_args.args == ("flow-1", {"name": "Triagem v2"})

    def test_publish(self, client, flows_db, saved_flow):
        flows_db.get_flow.return_value = saved_flow
        flows_db.update_flow.return_value = saved_flow.model_copy(update={"is_active": True})

        body = client.post("/api/flows/flow-1/publish").json()

        flows_db.deactivate_department_flows.assert_awaited_once_with("locacao", "flow-1")
        flows_db.update_flow.assert_awaited_once_with("flow-1", {"is_active": True})
        assert body["flow"]["isActive"] is True
        assert body["warnings"] == []

    def test_publish_blocked_by_errors(self, client, flows_db):
        flows_db.get_flow.return_value = Flow(
            id="flow-2", name="Quebrado", department="vendas", nodes=[node("end-1", "end")], edges=[],
        )

        response = client.post("/api/flows/flow-2/publish")

        assert response.status_code == 422
        assert response.json()["detail"]["errors"][0]["code"] == "NO_START"
        flows_db.deactivate_department_flows.assert_not_awaited()

    def test_duplicate(self, client, flows_db, saved_flow):
        flows_db.get_flow.return_value = saved_flow.model_copy(update={"is_active": True})

        response = client.post("/api/flows/flow-1/duplicate")

        assert response.status_code == 201
        row = flows_db.create_flow.await_args.args[0]
        assert row["name"] == "Triagem (cópia)"
        assert row["is_active"] is False

    def test_delete(self, client, flows_db, saved_flow):
        flows_db.get_flow.return_value = saved_flow

        assert client.delete("/api/flows/flow-1").json() == {"success": True}
        flows_db.delete_flow.assert_awaited_once_with("flow-1")


class TestLeadWebhooks:
    """Tests for the portal and landing page webhooks"""

    @pytest.fixture
    def intake(self):
        with patch("imobcrm.api.routes.lead_webhooks.lead_intake") as mock_intake:
            mock_intake.verify_token = AsyncMock()
            mock_intake.process_portal_lead = AsyncMock(
                return_value={"success": True, "contactId": "contact-1", "message": "Lead processed successfully"}
            )
            mock_intake.process_landing_lead = AsyncMock()
            yield mock_intake

    def test_unauthorized(self, client, intake):
        intake.verify_token.side_effect = WebhookAuthError("Unauthorized")

        response = client.post("/functions/portal-leads-webhook", json={"name": "Ana"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_portal_lead(self, client, intake):
        response = client.post(
            "/functions/portal-leads-webhook",
            params={"token": "abc"},
            json={"leadOrigin": "ZAP", "name": "Ana", "phoneNumber": "48999998888"},
        )

        assert response.status_code == 200
        assert response.json()["contactId"] == "contact-1"
        intake.verify_token.assert_awaited_once_with("abc")
        assert intake.process_portal_lead.await_args.args[0].phone_number == "48999998888"

    def test_landing_lead_error_status(self, client, intake):
        intake.process_landing_lead.side_effect = LeadIntakeError("Development not found: nada", 404)

        response = client.post(
            "/functions/landing-page-webhook",
            params={"token": "abc"},
            json={"phone": "48999998888", "development_slug": "nada"},
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Development not found: nada"}


class TestFunctionAuth:
    """Tests for the token check on operator function endpoints"""

    @pytest.fixture
    def rejecting_intake(self):
        with patch("imobcrm.api.routes.assistant.lead_intake") as assistant_intake, \
                patch("imobcrm.api.routes.contacts.lead_intake") as contacts_intake:
            for intake in (assistant_intake, contacts_intake):
                intake.verify_token = AsyncMock(side_effect=WebhookAuthError("Unauthorized"))
            yield assistant_intake, contacts_intake

    @pytest.mark.parametrize("path,body", [
        ("/functions/ai-reengagement", None),
        ("/functions/ai-communicator", {"action": "start_conversation"}),
        ("/functions/import-contacts", {"csv": "header\nrow"}),
    ])
    def test_rejected_without_token(self, client, rejecting_intake, path, body):
        with patch("imobcrm.api.routes.assistant.reengagement") as service, \
                patch("imobcrm.api.routes.contacts.contact_import") as importer:
            service.run = AsyncMock()
            importer.import_csv = AsyncMock()
            response = client.post(path, json=body)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        service.run.assert_not_awaited()
        importer.import_csv.assert_not_awaited()

    def test_token_forwarded(self, client, rejecting_intake):
        assistant_intake, _ = rejecting_intake
        assistant_intake.verify_token.side_effect = None

        with patch("imobcrm.api.routes.assistant.reengagement") as service:
            service.run = AsyncMock(return_value=ReengagementReport(processed=0))
            response = client.post("/functions/ai-reengagement", params={"token": "abc"})

        assert response.status_code == 200
        assistant_intake.verify_token.assert_awaited_once_with("abc")


class TestFunctionRoutes:
    """Tests for the remaining function-style endpoints"""

    @pytest.fixture(autouse=True)
    def accept_token(self):
        with patch("imobcrm.api.routes.assistant.lead_intake") as assistant_intake, \
                patch("imobcrm.api.routes.contacts.lead_intake") as contacts_intake:
            assistant_intake.verify_token = AsyncMock()
            contacts_intake.verify_token = AsyncMock()
            yield

    def test_flow_executor(self, client):
        result = {"success": True, "response": "Olá!", "escalated": False, "status": "waiting_response"}
        with patch("imobcrm.api.routes.flow_executor.flow_runtime") as runtime:
            runtime.handle_inbound = AsyncMock(return_value=result)
            response = client.post("/functions/flow-executor", json={
                "phone_number": "5548999998888", "message": "oi", "department_code": "locacao",
            })

        assert response.json() == result
        runtime.handle_inbound.assert_awaited_once_with(
            "5548999998888", "oi", conversation_id=None, department_code="locacao"
        )

    def test_flow_executor_error(self, client):
        with patch("imobcrm.api.routes.flow_executor.flow_runtime") as runtime:
            runtime.handle_inbound = AsyncMock(side_effect=RuntimeError("Flow not found: x"))
            response = client.post("/functions/flow-executor", json={"phone_number": "5548999998888"})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Flow not found: x"}

    def test_import_contacts_empty(self, client):
        response = client.post("/functions/import-contacts", json={"csv": "  "})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": EMPTY_CSV_ERROR}

    def test_import_contacts_raw_body(self, client):
        with patch("imobcrm.api.routes.contacts.contact_import") as importer:
            importer.import_csv = AsyncMock(return_value=ImportResult(total_processed=1, inserted=1))
            response = client.post(
                "/functions/import-contacts",
                content="header\nrow",
                headers={"Content-Type": "text/csv"},
            )

        assert response.json()["totalProcessed"] == 1
        importer.import_csv.assert_awaited_once_with("header\nrow")

    def test_reengagement_without_leads(self, client):
        report = ReengagementReport(message="No leads to reengage", processed=0, sent=None, failed=None)
        with patch("imobcrm.api.routes.assistant.reengagement") as service:
            service.run = AsyncMock(return_value=report)
            body = client.post("/functions/ai-reengagement").json()

        assert body == {"success": True, "processed": 0, "message": "No leads to reengage"}

    def test_communicator_error(self, client):
        with patch("imobcrm.api.routes.assistant.communicator") as communicator:
            communicator.handle = AsyncMock(side_effect=ValueError("Unknown action: dance"))
            response = client.post("/functions/ai-communicator", json={"action": "dance"})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Unknown action: dance"}

    def test_clickup_missing_fields(self, client):
        response = client.post("/functions/clickup-create-task", json={"ticket": {"id": "t1"}})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing ticket data or listId"}

    def test_clickup_created(self, client):
        with patch("imobcrm.api.routes.integrations.clickup") as service:
            service.create_task = AsyncMock(return_value={"success": True, "integration_id": "cu-1"})
            response = client.post("/functions/clickup-create-task", json={"ticket": {"id": "t1"}, "listId": "l1"})

        assert response.status_code == 201
        assert response.json()["integration_id"] == "cu-1"

    def test_clickup_integration_error(self, client):
        with patch("imobcrm.api.routes.integrations.clickup") as service:
            service.update_task = AsyncMock(
                side_effect=IntegrationError("clickup", "Integration record not found for ticket", 404)
            )
            response = client.post("/functions/clickup-update-task", json={"ticketId": "t1", "updates": {"title": "x"}})

        assert response.status_code == 404
        assert response.json() == {"error": "Integration record not found for ticket"}

    def test_n8n_not_configured(self, client):
        with patch("imobcrm.api.routes.integrations.n8n") as service:
            service.trigger = AsyncMock(side_effect=IntegrationError("n8n", "N8N webhook URL not configured", 400))
            response = client.post("/functions/n8n-trigger", json={"phoneNumber": "5548999998888", "messageBody": "oi"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "N8N webhook URL not configured"}


class TestPromptPreview:
    """Tests for /api/prompts/preview"""

    def test_preview(self, client):
        body = client.post("/api/prompts/preview", json={
            "config": {"agent_name": "Nina"},
            "department": "vendas",
        }).json()

        assert body["department"] == "vendas"
        assert "Nina" in body["prompt"]
        assert body["tokens"] == -(-len(body["prompt"]) // 4)
        assert body["is_override"] is False

    def test_preview_override(self, client):
        body = client.post("/api/prompts/preview", json={
            "config": {"prompt_overrides": {"locacao": "Prompt fixo"}},
            "department": "locacao",
        }).json()

        assert body["prompt"] == "Prompt fixo"
        assert body["tokens"] == 3
        assert body["token_status"] == "Bom"
        assert body["is_override"] is True
