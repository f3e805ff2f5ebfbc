"""
Node Outcome - What a node handler asks the walker to do next
"""
from dataclasses import dataclass
from typing import Optional, Any
from enum import Enum


class OutcomeType(str, Enum):
    """Kind of node outcome"""
    ADVANCE = "advance"
    WAIT = "wait"
    COMPLETE = "complete"
    ESCALATE = "escalate"
    PAUSE = "pause"
    ERROR = "error"


@dataclass
class NodeOutcome:
    """
    Result of executing one node.

    Besides the transition it carries the fields that end up in the
    execution log entry for the node.
    """

    kind: OutcomeType = OutcomeType.ADVANCE
    next_node_id: Optional[str] = None

    # Execution log
    action: str = ""
    input: Optional[Any] = None
    output: Optional[Any] = None
    success: bool = True

    # Error / wait details
    error: Optional[str] = None
    waiting_for: Optional[str] = None

    @property
    def stops_walk(self) -> bool:
        return self.kind != OutcomeType.ADVANCE


# Factory functions for common outcomes

def advance(next_node_id: Optional[str], action: str, input: Any = None, output: Any = None, success: bool = True) -> NodeOutcome:
    return NodeOutcome(
        kind=OutcomeType.ADVANCE,
        next_node_id=next_node_id,
        action=action,
        input=input,
        output=output,
        success=success
    )


def wait_for_input(action: str, waiting_for: Optional[str] = None, input: Any = None) -> NodeOutcome:
    return NodeOutcome(kind=OutcomeType.WAIT, action=action, waiting_for=waiting_for, input=input)


def complete(action: str, output: Any = None) -> NodeOutcome:
    return NodeOutcome(kind=OutcomeType.COMPLETE, action=action, output=output)


def escalate(action: str, input: Any = None, output: Any = None) -> NodeOutcome:
    return NodeOutcome(kind=OutcomeType.ESCALATE, action=action, input=input, output=output)


def pause(resume_node_id: Optional[str], action: str, input: Any = None) -> NodeOutcome:
    return NodeOutcome(kind=OutcomeType.PAUSE, next_node_id=resume_node_id, action=action, input=input)


def failure(error: str, action: str = "Erro", input: Any = None) -> NodeOutcome:
    return NodeOutcome(kind=OutcomeType.ERROR, action=action, error=error, input=input, success=False)
