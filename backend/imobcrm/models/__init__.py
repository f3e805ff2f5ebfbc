from .flow import (
    # Enums
    NodeType,
    Department,
    StartTrigger,
    ConditionType,
    ActionType,
    DelayUnit,
    Priority,
    InputType,
    IntegrationType,

    # Node configs
    Branch,
    TimeRange,
    StartNodeConfig,
    MessageNodeConfig,
    ConditionNodeConfig,
    ActionNodeConfig,
    DelayNodeConfig,
    EscalationNodeConfig,
    EndNodeConfig,
    InputNodeConfig,
    IntegrationNodeConfig,
    NODE_CONFIG_MODELS,

    # Graph
    Position,
    NodeData,
    FlowNode,
    FlowEdge,
    FlowGraph,
    Flow,
    FlowCreate,
    FlowUpdate,
)
from .lead import (
    TransactionType,
    ContactType,
    QualificationStatus,
    PortalLead,
    LandingPageLead,
    ContractInfo,
    ImportedContact,
    ImportResult,
    LeadToReengage,
    ReengagementReport,
    C2SLead,
)
from .agent import (
    PromptDepartment,
    AgentTone,
    AgentConfig,
    PromptPreviewRequest,
    PromptPreview,
)
from .message import MessageDirection, MessageRow

__all__ = [
    # Flow
    "NodeType",
    "Department",
    "StartTrigger",
    "ConditionType",
    "ActionType",
    "DelayUnit",
    "Priority",
    "InputType",
    "IntegrationType",
    "Branch",
    "TimeRange",
    "StartNodeConfig",
    "MessageNodeConfig",
    "ConditionNodeConfig",
    "ActionNodeConfig",
    "DelayNodeConfig",
    "EscalationNodeConfig",
    "EndNodeConfig",
    "InputNodeConfig",
    "IntegrationNodeConfig",
    "NODE_CONFIG_MODELS",
    "Position",
    "NodeData",
    "FlowNode",
    "FlowEdge",
    "FlowGraph",
    "Flow",
    "FlowCreate",
    "FlowUpdate",

    # Leads
    "TransactionType",
    "ContactType",
    "QualificationStatus",
    "PortalLead",
    "LandingPageLead",
    "ContractInfo",
    "ImportedContact",
    "ImportResult",
    "LeadToReengage",
    "ReengagementReport",
    "C2SLead",

    # Agent
    "PromptDepartment",
    "AgentTone",
    "AgentConfig",
    "PromptPreviewRequest",
    "PromptPreview",

    # Messages
    "MessageDirection",
    "MessageRow",
]
