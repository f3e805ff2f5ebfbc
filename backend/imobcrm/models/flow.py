"""
Flow document models - nodes, edges, branches and per-type node configs.

The document is stored verbatim in ``ai_flows`` (``nodes`` and ``edges`` JSON
columns) and uses camelCase keys on the wire, so every model accepts both the
alias and the Python field name.
"""
from enum import Enum
from typing import Optional, Any, List, Dict, Type
from datetime import datetime
from pydantic import BaseModel, Field


class NodeType(str, Enum):
    """Node types understood by the flow engine"""
    START = "start"
    MESSAGE = "message"
    CONDITION = "condition"
    ACTION = "action"
    DELAY = "delay"
    ESCALATION = "escalation"
    END = "end"
    INPUT = "input"
    INTEGRATION = "integration"


class Department(str, Enum):
    """Departments a flow can be scoped to"""
    LOCACAO = "locacao"
    VENDAS = "vendas"
    ADMINISTRATIVO = "administrativo"
    MARKETING = "marketing"


class StartTrigger(str, Enum):
    FIRST_MESSAGE = "first_message"
    KEYWORD = "keyword"
    TEMPLATE_RESPONSE = "template_response"


class ConditionType(str, Enum):
    KEYWORD = "keyword"
    VARIABLE = "variable"
    TIME = "time"
    TAG = "tag"
    INTENT = "intent"


class ActionType(str, Enum):
    UPDATE_VISTA = "update_vista"
    ADD_TAG = "add_tag"
    REMOVE_TAG = "remove_tag"
    UPDATE_CONTACT = "update_contact"
    SET_VARIABLE = "set_variable"


class DelayUnit(str, Enum):
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InputType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    YES_NO = "yes_no"
    EMAIL = "email"
    PHONE = "phone"


class IntegrationType(str, Enum):
    WEBHOOK = "webhook"
    N8N = "n8n"
    API = "api"


class CamelModel(BaseModel):
    """Base for wire models that use camelCase aliases"""
    model_config = {"populate_by_name": True}


# ==================== NODE CONFIGS ====================

class Branch(CamelModel):
    """One outgoing branch of a condition node"""
    id: str
    label: str = ""
    value: str = ""
    keywords: List[str] = Field(default_factory=list)

    @property
    def is_default(self) -> bool:
        return not self.keywords


class TimeRange(CamelModel):
    start: str = "09:00"
    end: str = "18:00"


class StartNodeConfig(CamelModel):
    trigger: StartTrigger = StartTrigger.FIRST_MESSAGE
    keywords: List[str] = Field(default_factory=list)


class MessageNodeConfig(CamelModel):
    text: str = ""
    delay: float = 0
    use_client_name: bool = Field(default=False, alias="useClientName")


class ConditionNodeConfig(CamelModel):
    condition_type: ConditionType = Field(default=ConditionType.KEYWORD, alias="conditionType")
    branches: List[Branch] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    variable_name: Optional[str] = Field(default=None, alias="variableName")
    intent: Optional[str] = None
    time_range: Optional[TimeRange] = Field(default=None, alias="timeRange")


class ActionNodeConfig(CamelModel):
    action_type: ActionType = Field(alias="actionType")
    vista_fields: Dict[str, Any] = Field(default_factory=dict, alias="vistaFields")
    tag_id: Optional[str] = Field(default=None, alias="tagId")
    contact_fields: Dict[str, Any] = Field(default_factory=dict, alias="contactFields")
    variable_name: Optional[str] = Field(default=None, alias="variableName")
    variable_value: Optional[Any] = Field(default=None, alias="variableValue")


class DelayNodeConfig(CamelModel):
    duration: float = 1
    unit: DelayUnit = DelayUnit.SECONDS

    @property
    def seconds(self) -> float:
        if self.unit == DelayUnit.MINUTES:
            return self.duration * 60
        if self.unit == DelayUnit.HOURS:
            return self.duration * 3600
        return self.duration


class EscalationNodeConfig(CamelModel):
    department: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    reason: str = ""


class EndNodeConfig(CamelModel):
    message: Optional[str] = None
    close_conversation: bool = Field(default=False, alias="closeConversation")


class InputNodeConfig(CamelModel):
    variable_name: str = Field(alias="variableName")
    expected_type: InputType = Field(default=InputType.TEXT, alias="expectedType")
    prompt: Optional[str] = None
    timeout: int = 300
    timeout_action: str = Field(default="retry", alias="timeoutAction")


class IntegrationNodeConfig(CamelModel):
    integration_type: IntegrationType = Field(default=IntegrationType.WEBHOOK, alias="integrationType")
    url: str = ""
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None


NODE_CONFIG_MODELS: Dict[str, Type[BaseModel]] = {
    NodeType.START.value: StartNodeConfig,
    NodeType.MESSAGE.value: MessageNodeConfig,
    NodeType.CONDITION.value: ConditionNodeConfig,
    NodeType.ACTION.value: ActionNodeConfig,
    NodeType.DELAY.value: DelayNodeConfig,
    NodeType.ESCALATION.value: EscalationNodeConfig,
    NodeType.END.value: EndNodeConfig,
    NodeType.INPUT.value: InputNodeConfig,
    NodeType.INTEGRATION.value: IntegrationNodeConfig,
}


# ==================== GRAPH ====================

class Position(BaseModel):
    """Canvas position - layout only, ignored by the engine"""
    x: float = 0
    y: float = 0


class NodeData(BaseModel):
    label: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


class FlowNode(BaseModel):
    """A node of the flow graph"""
    id: str
    type: str
    position: Position = Field(default_factory=Position)
    data: NodeData = Field(default_factory=NodeData)

    @property
    def label(self) -> str:
        return self.data.label or self.type

    def parse_config(self) -> BaseModel:
        """
        Validate the raw config against the model of this node type.

        Raises:
            KeyError: unknown node type
            pydantic.ValidationError: malformed config
        """
        model = NODE_CONFIG_MODELS[self.type]
        return model.model_validate(self.data.config or {})


class FlowEdge(CamelModel):
    """Directed edge; ``source_handle`` names the condition branch it leaves from"""
    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")


class FlowGraph(CamelModel):
    """Nodes and edges plus the lookups the engine needs"""
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)

    def get_node(self, node_id: Optional[str]) -> Optional[FlowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def start_nodes(self) -> List[FlowNode]:
        return [n for n in self.nodes if n.type == NodeType.START.value]

    def get_start_node(self) -> Optional[FlowNode]:
        starts = self.start_nodes()
        return starts[0] if starts else None

    def outgoing(self, node_id: str) -> List[FlowEdge]:
        return [e for e in self.edges if e.source == node_id]


class Flow(FlowGraph):
    """A persisted flow document"""
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    department: Department
    is_active: bool = Field(default=False, alias="isActive")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Flow":
        """Build a Flow from an ai_flows row"""
        return cls(
            id=row.get("id"),
            name=row.get("name") or "",
            description=row.get("description"),
            department=row.get("department_code") or Department.MARKETING.value,
            nodes=row.get("nodes") or [],
            edges=row.get("edges") or [],
            is_active=bool(row.get("is_active")),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        """Columns written to ai_flows (nodes/edges keep their wire shape)"""
        return {
            "name": self.name,
            "description": self.description,
            "department_code": self.department.value,
            "nodes": [n.model_dump(mode="json", by_alias=True) for n in self.nodes],
            "edges": [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in self.edges],
            "is_active": self.is_active,
        }


class FlowCreate(CamelModel):
    """Payload to create a flow (blank or from a template)"""
    name: str
    description: Optional[str] = None
    department: Department
    template_id: Optional[str] = Field(default=None, alias="templateId")
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)


class FlowUpdate(CamelModel):
    """Payload to save a flow - only provided fields are written"""
    name: Optional[str] = None
    description: Optional[str] = None
    department: Optional[Department] = None
    nodes: Optional[List[FlowNode]] = None
    edges: Optional[List[FlowEdge]] = None
