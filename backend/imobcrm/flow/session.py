"""
Flow Session - Execution state of one walk through a flow graph
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Any, Dict, List
from enum import Enum

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Status of a flow session"""
    IDLE = "idle"
    RUNNING = "running"
    WAITING_INPUT = "waiting_input"
    COMPLETED = "completed"
    ESCALATED = "escalated"
    PAUSED = "paused"
    ERROR = "error"


TERMINAL_STATUSES = {
    SessionStatus.COMPLETED,
    SessionStatus.ESCALATED,
    SessionStatus.ERROR,
}


class MessageType(str, Enum):
    """Author of a transcript line"""
    BOT = "bot"
    USER = "user"
    SYSTEM = "system"


@dataclass
class TranscriptMessage:
    """One line of the session transcript"""
    type: MessageType
    content: str
    node_id: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "nodeId": self.node_id,
        }


@dataclass
class ExecutionLogEntry:
    """Record of one node execution"""
    node_id: str
    node_type: str
    node_label: str
    action: str
    success: bool = True
    input: Optional[Any] = None
    output: Optional[Any] = None
    duration_ms: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "nodeType": self.node_type,
            "nodeLabel": self.node_label,
            "action": self.action,
            "input": self.input,
            "output": self.output,
            "durationMs": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
        }


@dataclass
class FlowSession:
    """
    State of a flow walk.

    Tracks:
    - Current node and status
    - Variable bag (seeded with contact data, filled by input/action nodes)
    - Transcript of bot/user/system messages
    - Execution log and visited node ids
    """

    flow_id: Optional[str] = None
    phone_number: Optional[str] = None
    conversation_id: Optional[str] = None
    execution_id: Optional[str] = None

    status: SessionStatus = SessionStatus.IDLE
    current_node_id: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)

    transcript: List[TranscriptMessage] = field(default_factory=list)
    execution_log: List[ExecutionLogEntry] = field(default_factory=list)
    visited_nodes: List[str] = field(default_factory=list)
    error: Optional[str] = None

    # ==================== State transitions ====================

    def move_to_node(self, node_id: str) -> None:
        self.current_node_id = node_id
        self.status = SessionStatus.RUNNING

    def visit(self, node_id: str) -> None:
        self.visited_nodes.append(node_id)

    def set_waiting_input(self, node_id: str, waiting_for: Optional[str] = None) -> None:
        self.current_node_id = node_id
        self.status = SessionStatus.WAITING_INPUT
        self.context["waiting_node"] = node_id
        if waiting_for:
            self.context["waiting_for"] = waiting_for

    def clear_waiting(self) -> None:
        self.context.pop("waiting_node", None)
        self.context.pop("waiting_for", None)

    def complete(self) -> None:
        self.status = SessionStatus.COMPLETED
        self.clear_waiting()

    def escalate(self) -> None:
        self.status = SessionStatus.ESCALATED
        self.clear_waiting()

    def pause(self, resume_node_id: Optional[str]) -> None:
        if resume_node_id:
            self.current_node_id = resume_node_id
        self.status = SessionStatus.PAUSED

    def fail(self, message: str) -> None:
        logger.warning(f"[FlowSession] {self.flow_id}: {message}")
        self.status = SessionStatus.ERROR
        self.error = message
        self.add_message(MessageType.SYSTEM, f"❌ Erro: {message}")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_waiting(self) -> bool:
        return self.status == SessionStatus.WAITING_INPUT

    # ==================== Recording ====================

    def add_message(self, type: MessageType, content: str, node_id: Optional[str] = None) -> TranscriptMessage:
        message = TranscriptMessage(type=type, content=content, node_id=node_id)
        self.transcript.append(message)
        return message

    def add_log(self, entry: ExecutionLogEntry) -> None:
        self.execution_log.append(entry)

    def bot_messages(self) -> List[str]:
        return [m.content for m in self.transcript if m.type == MessageType.BOT]

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flowId": self.flow_id,
            "status": self.status.value,
            "currentNodeId": self.current_node_id,
            "variables": self.variables,
            "messages": [m.to_dict() for m in self.transcript],
            "executionLog": [e.to_dict() for e in self.execution_log],
            "visitedNodes": list(self.visited_nodes),
            "error": self.error,
        }

    @classmethod
    def from_execution_row(cls, row: Dict[str, Any]) -> "FlowSession":
        """Restore a session persisted in flow_executions"""
        status = row.get("status") or SessionStatus.RUNNING.value
        if status in ("waiting_input", "waiting_response"):
            status = SessionStatus.WAITING_INPUT.value
        return cls(
            flow_id=row.get("flow_id"),
            phone_number=row.get("phone_number"),
            conversation_id=row.get("conversation_id"),
            execution_id=row.get("id"),
            status=SessionStatus(status),
            current_node_id=row.get("current_node_id"),
            variables=dict(row.get("variables") or {}),
            context=dict(row.get("context") or {}),
        )


def create_session(
    flow_id: Optional[str] = None,
    variables: Optional[Dict[str, Any]] = None,
    **kwargs
) -> FlowSession:
    """Factory function to create a new session"""
    return FlowSession(flow_id=flow_id, variables=dict(variables or {}), **kwargs)
