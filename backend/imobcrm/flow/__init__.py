"""
Flow module.

Graph walker for the visual flow builder:
- FlowExecutor: walks nodes, renders {{variables}}, selects branches
- FlowSession: status, variables, transcript and execution log of a walk
- BranchMatcher: condition branch selection
- FlowEffects: side-effect backends (simulated for tests, live for WhatsApp)
- FlowRuntime: production entry point persisting flow_executions
- FlowValidator: publish-time checks
- Flow templates that seed new flows
"""

from .session import (
    FlowSession,
    SessionStatus,
    MessageType,
    TranscriptMessage,
    ExecutionLogEntry,
    create_session,
)
from .result import NodeOutcome, OutcomeType
from .matcher import BranchMatcher, BranchMatch, matcher
from .effects import FlowEffects, SimulatedEffects, perform_http_call
from .executor import FlowExecutor, create_flow_executor
from .runtime import FlowRuntime, LiveEffects, flow_runtime
from .validator import (
    ValidationIssue,
    FlowValidationError,
    FlowValidator,
    validate_flow,
    ensure_publishable,
)
from .templates import (
    FlowTemplate,
    FLOW_TEMPLATES,
    get_template_by_id,
    get_templates_by_category,
)

__all__ = [
    # Session
    "FlowSession",
    "SessionStatus",
    "MessageType",
    "TranscriptMessage",
    "ExecutionLogEntry",
    "create_session",

    # Engine
    "NodeOutcome",
    "OutcomeType",
    "BranchMatcher",
    "BranchMatch",
    "matcher",
    "FlowEffects",
    "SimulatedEffects",
    "perform_http_call",
    "FlowExecutor",
    "create_flow_executor",
    "FlowRuntime",
    "LiveEffects",
    "flow_runtime",

    # Validation
    "ValidationIssue",
    "FlowValidationError",
    "FlowValidator",
    "validate_flow",
    "ensure_publishable",

    # Templates
    "FlowTemplate",
    "FLOW_TEMPLATES",
    "get_template_by_id",
    "get_templates_by_category",
]
