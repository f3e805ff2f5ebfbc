"""
Flow Validator - Structural checks run before a flow is published
"""
import logging
from typing import List, Dict, Any, Set, Optional

from pydantic import ValidationError

from ..models.flow import FlowGraph, NodeType, NODE_CONFIG_MODELS, ConditionNodeConfig

logger = logging.getLogger(__name__)


class ValidationIssue:
    """One problem found in a flow"""

    def __init__(
        self,
        code: str,
        message: str,
        node_id: Optional[str] = None,
        severity: str = "error"  # error, warning
    ):
        self.code = code
        self.message = message
        self.node_id = node_id
        self.severity = severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "nodeId": self.node_id,
            "severity": self.severity,
        }

    def __str__(self) -> str:
        node_info = f" [Node: {self.node_id}]" if self.node_id else ""
        return f"[{self.severity.upper()}] {self.code}: {self.message}{node_info}"


class FlowValidationError(Exception):
    """Raised when a flow with blocking issues is published"""

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(str(i) for i in issues))


class FlowValidator:
    """
    Validates flow structure.

    Errors (block publish):
    - zero or several start nodes
    - condition nodes with fewer than two branches
    - edges pointing to unknown nodes
    - unknown node types

    Warnings:
    - malformed node configs
    - condition edges whose handle matches no branch
    - non-terminal nodes without outgoing edges
    - nodes unreachable from start
    """

    def __init__(self, flow: FlowGraph):
        self.flow = flow
        self.issues: List[ValidationIssue] = []

    def validate(self) -> List[ValidationIssue]:
        self.issues = []
        self._check_start()
        node_ids = {n.id for n in self.flow.nodes}
        self._check_edges(node_ids)
        self._check_nodes()
        self._check_reachability()
        return self.issues

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    def _add(self, code: str, message: str, node_id: Optional[str] = None, severity: str = "error") -> None:
        self.issues.append(ValidationIssue(code, message, node_id, severity))

    def _check_start(self) -> None:
        starts = self.flow.start_nodes()
        if not starts:
            self._add("NO_START", "O fluxo precisa de um nó de início")
        elif len(starts) > 1:
            for node in starts[1:]:
                self._add("MULTIPLE_START", "O fluxo deve ter apenas um nó de início", node.id)

    def _check_edges(self, node_ids: Set[str]) -> None:
        for edge in self.flow.edges:
            if edge.source not in node_ids:
                self._add("EDGE_UNKNOWN_SOURCE", f"Conexão {edge.id} parte de um nó inexistente ({edge.source})")
            if edge.target not in node_ids:
                self._add("EDGE_UNKNOWN_TARGET", f"Conexão {edge.id} aponta para um nó inexistente ({edge.target})")

    def _check_nodes(self) -> None:
        for node in self.flow.nodes:
            if node.type not in NODE_CONFIG_MODELS:
                self._add("UNKNOWN_TYPE", f"Tipo de nó desconhecido: {node.type}", node.id)
                continue

            try:
                config = node.parse_config()
            except ValidationError as e:
                self._add("INVALID_CONFIG", f"Configuração inválida: {e.error_count()} erro(s)", node.id, "warning")
                continue

            outgoing = self.flow.outgoing(node.id)
            if node.type == NodeType.CONDITION.value:
                self._check_condition(node.id, config, outgoing)
            elif not outgoing and node.type not in (NodeType.END.value, NodeType.ESCALATION.value):
                self._add("DEAD_END", f"O nó '{node.label}' não tem saída", node.id, "warning")

    def _check_condition(self, node_id: str, config: ConditionNodeConfig, outgoing) -> None:
        if len(config.branches) < 2:
            self._add("CONDITION_BRANCHES", "Condições precisam de pelo menos duas branches", node_id)

        handles = set()
        for index, branch in enumerate(config.branches):
            handles.update({branch.id, f"branch-{branch.id}", f"source-{index}"})
        for edge in outgoing:
            if edge.source_handle and edge.source_handle not in handles:
                self._add(
                    "UNKNOWN_BRANCH_HANDLE",
                    f"Conexão {edge.id} usa a saída '{edge.source_handle}', que não corresponde a nenhuma branch",
                    node_id,
                    "warning"
                )

    def _check_reachability(self) -> None:
        start = self.flow.get_start_node()
        if start is None:
            return
        reachable: Set[str] = set()
        pending = [start.id]
        while pending:
            current = pending.pop()
            if current in reachable:
                continue
            reachable.add(current)
            pending.extend(e.target for e in self.flow.outgoing(current))
        for node in self.flow.nodes:
            if node.id not in reachable:
                self._add("UNREACHABLE", f"O nó '{node.label}' não é alcançável a partir do início", node.id, "warning")


def validate_flow(flow: FlowGraph) -> List[ValidationIssue]:
    """Validate a flow and return every issue found"""
    return FlowValidator(flow).validate()


def ensure_publishable(flow: FlowGraph) -> List[ValidationIssue]:
    """
    Raise FlowValidationError when the flow has blocking errors.

    Returns:
        The non-blocking warnings
    """
    validator = FlowValidator(flow)
    validator.validate()
    if validator.errors:
        logger.info(f"Flow rejected with {len(validator.errors)} error(s)")
        raise FlowValidationError(validator.errors)
    return validator.warnings
