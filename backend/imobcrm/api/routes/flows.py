"""
Flow builder API routes
"""
import logging
from typing import Optional, Any, Dict, List

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from ...models import Flow, FlowCreate, FlowUpdate, FlowGraph, FlowNode, FlowEdge
from ...services.database import db
from ...flow import (
    FlowExecutor,
    SimulatedEffects,
    FlowValidationError,
    validate_flow,
    ensure_publishable,
    FLOW_TEMPLATES,
    get_template_by_id,
    get_templates_by_category,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flows", tags=["flows"])


class FlowTestRequest(BaseModel):
    """Walk a saved flow (flowId) or an unsaved graph over simulated messages"""
    flow_id: Optional[str] = Field(default=None, alias="flowId")
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    messages: List[str] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    contact_tags: List[str] = Field(default_factory=list, alias="contactTags")
    intent_answers: Dict[str, bool] = Field(default_factory=dict, alias="intentAnswers")
    real_integrations: bool = Field(default=False, alias="realIntegrations")

    model_config = {"populate_by_name": True}


def _dump(flow: Flow) -> Dict[str, Any]:
    return flow.model_dump(mode="json", by_alias=True)


def _update_row(update: FlowUpdate) -> Dict[str, Any]:
    """ai_flows columns for the fields present in the payload"""
    fields = update.model_dump(exclude_unset=True)
    row: Dict[str, Any] = {}
    if "name" in fields:
        row["name"] = update.name
    if "description" in fields:
        row["description"] = update.description
    if update.department is not None:
        row["department_code"] = update.department.value
    if update.nodes is not None:
        row["nodes"] = [n.model_dump(mode="json", by_alias=True) for n in update.nodes]
    if update.edges is not None:
        row["edges"] = [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in update.edges]
    return row


async def _get_or_404(flow_id: str) -> Flow:
    flow = await db.get_flow(flow_id)
    if not flow:
        raise HTTPException(status_code=404, detail="Flow not found")
    return flow


# ==================== Templates / validation / test ====================

@router.get("/templates")
async def list_templates(category: Optional[str] = Query(None)):
    templates = get_templates_by_category(category) if category else FLOW_TEMPLATES
    return [t.model_dump(mode="json", by_alias=True) for t in templates]


@router.post("/validate")
async def validate(graph: FlowGraph):
    issues = validate_flow(graph)
    errors = [i.to_dict() for i in issues if i.severity == "error"]
    warnings = [i.to_dict() for i in issues if i.severity != "error"]
    return {"valid": not errors, "errors": errors, "warnings": warnings}


@router.post("/test")
async def test_flow(request: FlowTestRequest):
    """
    Run the test panel: start the walk, then feed each message while the
    session waits for input.
    """
    if request.flow_id:
        graph: FlowGraph = await _get_or_404(request.flow_id)
    else:
        graph = FlowGraph(nodes=request.nodes, edges=request.edges)

    effects = SimulatedEffects(
        contact_tags=request.contact_tags,
        real_integrations=request.real_integrations,
        intent_answers=request.intent_answers,
    )
    executor = FlowExecutor(graph, effects=effects)
    session = await executor.start(variables=request.variables)

    for message in request.messages:
        if not session.is_waiting:
            break
        await executor.send_message(session, message)

    return {**session.to_dict(), "effects": effects.calls}


# ==================== CRUD ====================

@router.get("")
async def list_flows():
    flows = await db.list_flows()
    return [_dump(f) for f in flows]


@router.get("/{flow_id}")
async def get_flow(flow_id: str):
    return _dump(await _get_or_404(flow_id))


@router.post("", status_code=201)
async def create_flow(payload: FlowCreate):
    """Create a blank flow, or one seeded from a template"""
    nodes, edges = payload.nodes, payload.edges
    if payload.template_id:
        template = get_template_by_id(payload.template_id)
        if not template:
            raise HTTPException(status_code=404, detail=f"Template not found: {payload.template_id}")
        nodes, edges = template.nodes, template.edges

    flow = Flow(
        name=payload.name,
        description=payload.description,
        department=payload.department,
        nodes=nodes,
        edges=edges,
        is_active=False,
    )
    created = await db.create_flow(flow.to_row())
    logger.info(f"[Flows] Created flow {created.id} ({created.department.value})")
    return _dump(created)


@router.put("/{flow_id}")
async def save_flow(flow_id: str, payload: FlowUpdate):
    await _get_or_404(flow_id)
    updated = await db.update_flow(flow_id, _update_row(payload))
    if not updated:
        raise HTTPException(status_code=404, detail="Flow not found")
    return _dump(updated)


@router.post("/{flow_id}/publish")
async def publish_flow(flow_id: str):
    """Activate a flow; the department's other flows are deactivated"""
    flow = await _get_or_404(flow_id)
    try:
        warnings = ensure_publishable(flow)
    except FlowValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": "Flow has blocking errors", "errors": [i.to_dict() for i in e.issues]}
        )

    await db.deactivate_department_flows(flow.department.value, flow_id)
    published = await db.update_flow(flow_id, {"is_active": True})
    logger.info(f"[Flows] Published flow {flow_id} for department {flow.department.value}")
    return {"flow": _dump(published or flow), "warnings": [w.to_dict() for w in warnings]}


@router.post("/{flow_id}/unpublish")
async def unpublish_flow(flow_id: str):
    await _get_or_404(flow_id)
    updated = await db.update_flow(flow_id, {"is_active": False})
    return _dump(updated)


@router.post("/{flow_id}/duplicate", status_code=201)
async def duplicate_flow(flow_id: str):
    flow = await _get_or_404(flow_id)
    copy = flow.model_copy(update={"id": None, "name": f"{flow.name} (cópia)", "is_active": False})
    created = await db.create_flow(copy.to_row())
    return _dump(created)


@router.delete("/{flow_id}")
async def delete_flow(flow_id: str):
    await _get_or_404(flow_id)
    await db.delete_flow(flow_id)
    return {"success": True}
