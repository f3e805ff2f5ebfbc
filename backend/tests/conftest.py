"""
Pytest configuration and shared fixtures for ImobCRM tests.
"""
import os

# Settings are read at import time; the database is always mocked in tests
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-key")

import pytest
from typing import Dict, Any, List

from imobcrm.flow import SimulatedEffects

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


def node(node_id: str, node_type: str, label: str = "", **config: Any) -> Dict[str, Any]:
    """Node in the wire format saved by the flow builder."""
    return {
        "id": node_id,
        "type": node_type,
        "position": {"x": 0, "y": 0},
        "data": {"label": label or node_id, "config": config},
    }


def edge(source: str, target: str, handle: str = None) -> Dict[str, Any]:
    data = {"id": f"{source}->{target}", "source": source, "target": target}
    if handle:
        data["sourceHandle"] = handle
    return data


@pytest.fixture
def effects() -> SimulatedEffects:
    """Simulated side effects recording every call."""
    return SimulatedEffects()


@pytest.fixture
def keyword_flow() -> Dict[str, Any]:
    """Greeting, then a keyword condition with a catch-all branch."""
    return {
        "nodes": [
            node("start-1", "start", "Início"),
            node("message-1", "message", "Saudação", text="Olá {{nome}}! Você quer alugar ou comprar?"),
            node(
                "condition-1", "condition", "Interesse",
                conditionType="keyword",
                branches=[
                    {"id": "aluguel", "label": "Aluguel", "keywords": ["alugar", "aluguel"]},
                    {"id": "compra", "label": "Compra", "keywords": ["comprar", "compra"]},
                    {"id": "outro", "label": "Outro", "keywords": []},
                ],
            ),
            node("message-aluguel", "message", text="Vou te passar para a locação."),
            node("message-compra", "message", text="Vou te passar para vendas."),
            node("message-outro", "message", text="Não entendi, um atendente vai falar com você."),
            node("end-1", "end", "Fim", message="Até logo, {{nome}}!"),
        ],
        "edges": [
            edge("start-1", "message-1"),
            edge("message-1", "condition-1"),
            edge("condition-1", "message-aluguel", "branch-aluguel"),
            edge("condition-1", "message-compra", "branch-compra"),
            edge("condition-1", "message-outro", "branch-outro"),
            edge("message-aluguel", "end-1"),
            edge("message-compra", "end-1"),
            edge("message-outro", "end-1"),
        ],
    }


@pytest.fixture
def input_flow() -> Dict[str, Any]:
    """Asks for a budget, echoes it and closes the conversation."""
    return {
        "nodes": [
            node("start-1", "start"),
            node(
                "input-1", "input", "Orçamento",
                variableName="orcamento", expectedType="currency",
                prompt="Qual o seu orçamento, {{nome}}?", timeout=120, timeoutAction="escalate",
            ),
            node("message-1", "message", text="Anotado: {{orcamento}}"),
            node("end-1", "end", closeConversation=True),
        ],
        "edges": [
            edge("start-1", "input-1"),
            edge("input-1", "message-1"),
            edge("message-1", "end-1"),
        ],
    }


@pytest.fixture
def linear_flow() -> Dict[str, Any]:
    """Start -> message -> end, no waiting."""
    return {
        "nodes": [
            node("start-1", "start"),
            node("message-1", "message", text="Bem-vindo!"),
            node("end-1", "end"),
        ],
        "edges": [edge("start-1", "message-1"), edge("message-1", "end-1")],
    }


@pytest.fixture
def sample_execution_row() -> Dict[str, Any]:
    """flow_executions row waiting at the keyword condition."""
    return {
        "id": "exec-1",
        "flow_id": "flow-1",
        "phone_number": "5548999998888",
        "conversation_id": "conv-1",
        "current_node_id": "condition-1",
        "status": "waiting_response",
        "variables": {"nome": "Maria"},
        "context": {},
    }


def branch_ids(branches: List[Dict[str, Any]]) -> List[str]:
    return [b["id"] for b in branches]
