"""
Flow Executor - Walks a flow graph node by node.

The same walker drives the builder's test panel (simulated side effects) and
the production runtime (live side effects). A walk proceeds until a node has
to wait for the user (condition and input nodes) or the session reaches a
terminal state.
"""
import logging
import re
import time
from datetime import datetime
from typing import Optional, Any, Dict, Callable, Awaitable

from pydantic import ValidationError

from ..core.config import settings
from ..models.flow import (
    FlowGraph, FlowNode, NodeType, ActionType, ConditionType, InputType,
    StartNodeConfig, MessageNodeConfig, ConditionNodeConfig, ActionNodeConfig,
    DelayNodeConfig, EscalationNodeConfig, EndNodeConfig, InputNodeConfig,
    IntegrationNodeConfig
)
from .session import FlowSession, SessionStatus, MessageType, ExecutionLogEntry, create_session
from .result import (
    NodeOutcome, OutcomeType,
    advance, wait_for_input, complete, escalate, pause, failure
)
from .matcher import BranchMatcher, BranchMatch
from .effects import FlowEffects, SimulatedEffects

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")
YES_PATTERN = re.compile(r"^(sim|s|yes|y|1|ok|claro|pode|positivo)$")
NO_PATTERN = re.compile(r"^(não|nao|n|no|0|nunca|negativo)$")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

# Variables seeded into every test session
TEST_DEFAULT_VARIABLES = {
    "nome": "Cliente Teste",
    "telefone": "+5548999999999",
}

Handler = Callable[[FlowNode, Any, FlowSession], Awaitable[NodeOutcome]]


class FlowExecutor:
    """
    Graph walker for flow documents.

    Features:
    - Handler registry per node type
    - ``{{var}}`` substitution from the session variable bag
    - First-match-wins branch selection (see ``BranchMatcher``)
    - Step limit per walk so cyclic graphs cannot spin forever
    - Malformed node configs are logged as failed steps and skipped
    """

    def __init__(
        self,
        flow: FlowGraph | Dict[str, Any],
        effects: Optional[FlowEffects] = None,
        max_steps: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the FlowExecutor.

        Args:
            flow: Flow document (FlowGraph/Flow or raw dict with nodes/edges)
            effects: Side-effect backend (defaults to SimulatedEffects)
            max_steps: Maximum nodes executed per walk
            clock: Source of "now" for time conditions
        """
        if isinstance(flow, dict):
            flow = FlowGraph(nodes=flow.get("nodes") or [], edges=flow.get("edges") or [])
        self.flow = flow
        self.flow_id = getattr(flow, "id", None)
        self.effects = effects or SimulatedEffects()
        self.max_steps = max_steps or settings.FLOW_MAX_STEPS
        self.clock = clock
        self.matcher = BranchMatcher()

        self._handlers: Dict[str, Handler] = self._register_handlers()
        self._resume_handlers: Dict[str, Handler] = {
            NodeType.CONDITION.value: self._resume_condition,
            NodeType.INPUT.value: self._resume_input,
        }

        logger.debug(f"FlowExecutor initialized with {len(self.flow.nodes)} nodes")

    def _register_handlers(self) -> Dict[str, Handler]:
        """Register all node type handlers"""
        return {
            NodeType.START.value: self._handle_start,
            NodeType.MESSAGE.value: self._handle_message,
            NodeType.CONDITION.value: self._handle_condition,
            NodeType.INPUT.value: self._handle_input,
            NodeType.ACTION.value: self._handle_action,
            NodeType.DELAY.value: self._handle_delay,
            NodeType.ESCALATION.value: self._handle_escalation,
            NodeType.INTEGRATION.value: self._handle_integration,
            NodeType.END.value: self._handle_end,
        }

    # ==================== Public API ====================

    async def start(
        self,
        session: Optional[FlowSession] = None,
        variables: Optional[Dict[str, Any]] = None
    ) -> FlowSession:
        """
        Start a walk at the start node.

        Args:
            session: Existing session to run (production runtime), or None for a new test session
            variables: Extra variables merged over the defaults

        Returns:
            The session, stopped at a waiting node or a terminal state
        """
        if session is None:
            session = create_session(self.flow_id, {**TEST_DEFAULT_VARIABLES, **(variables or {})})
        elif variables:
            session.variables.update(variables)

        start_node = self.flow.get_start_node()
        if start_node is None:
            session.fail("Fluxo sem nó de início")
            return session

        session.add_message(MessageType.SYSTEM, "▶️ Fluxo iniciado")
        session.move_to_node(start_node.id)
        await self._walk(session)
        return session

    async def resume(self, session: FlowSession) -> FlowSession:
        """Continue a running or paused session from its current node"""
        if session.is_terminal:
            return session
        if session.current_node_id is None:
            return await self.start(session)
        session.status = SessionStatus.RUNNING
        await self._walk(session)
        return session

    async def send_message(self, session: FlowSession, text: str) -> FlowSession:
        """
        Feed one user message to a session waiting for input.

        Messages sent while the session is not waiting are ignored.
        """
        if not session.is_waiting:
            logger.warning(
                f"[FlowExecutor] Message ignored: session status is {session.status.value}"
            )
            return session

        node = self.flow.get_node(session.current_node_id)
        if node is None:
            session.fail(f"Nó não encontrado: {session.current_node_id}")
            return session

        session.add_message(MessageType.USER, text)
        session.variables["mensagem"] = text
        session.clear_waiting()
        session.status = SessionStatus.RUNNING

        handler = self._resume_handlers.get(node.type)
        if handler is None:
            # Paused at a node that does not consume input: just continue from it
            await self._walk(session)
            return session

        outcome = await self._run_node(node, session, handler)
        if self._apply(session, node, outcome):
            await self._walk(session)
        return session

    # ==================== Core loop ====================

    async def _walk(self, session: FlowSession) -> None:
        steps = 0
        while session.status == SessionStatus.RUNNING:
            if steps >= self.max_steps:
                session.fail(f"Limite de {self.max_steps} passos atingido (possível loop)")
                return
            steps += 1

            node = self.flow.get_node(session.current_node_id)
            if node is None:
                session.fail(f"Nó não encontrado: {session.current_node_id}")
                return

            handler = self._handlers.get(node.type)
            outcome = await self._run_node(node, session, handler)
            if not self._apply(session, node, outcome):
                return

    async def _run_node(self, node: FlowNode, session: FlowSession, handler: Optional[Handler]) -> NodeOutcome:
        """Parse the node config, run the handler and log the step"""
        session.visit(node.id)
        started = time.perf_counter()

        try:
            config = node.parse_config()
        except KeyError:
            outcome = advance(
                self._unconditional_node_id(node.id),
                f"Tipo de nó desconhecido: {node.type}",
                success=False
            )
        except ValidationError as e:
            outcome = advance(
                self._unconditional_node_id(node.id),
                "Configuração inválida",
                output={"errors": e.errors(include_url=False, include_context=False)},
                success=False
            )
        else:
            try:
                outcome = await handler(node, config, session)
            except Exception as e:
                logger.exception(f"[FlowExecutor] Error executing node {node.id}")
                outcome = advance(
                    self._unconditional_node_id(node.id),
                    f"Erro ao executar nó: {e}",
                    success=False
                )

        session.add_log(ExecutionLogEntry(
            node_id=node.id,
            node_type=node.type,
            node_label=node.label,
            action=outcome.action,
            success=outcome.success,
            input=outcome.input,
            output=outcome.output,
            duration_ms=int((time.perf_counter() - started) * 1000),
        ))
        return outcome

    def _apply(self, session: FlowSession, node: FlowNode, outcome: NodeOutcome) -> bool:
        """Apply an outcome to the session; returns True while the walk continues"""
        if not outcome.stops_walk:
            if outcome.next_node_id is None:
                session.fail(f"Nó '{node.label}' não tem saída (dead end)")
                return False
            session.move_to_node(outcome.next_node_id)
            return True

        if outcome.kind == OutcomeType.WAIT:
            session.set_waiting_input(node.id, outcome.waiting_for)
        elif outcome.kind == OutcomeType.COMPLETE:
            session.complete()
            session.add_message(MessageType.SYSTEM, "✅ Fluxo finalizado")
        elif outcome.kind == OutcomeType.ESCALATE:
            session.escalate()
        elif outcome.kind == OutcomeType.PAUSE:
            session.pause(outcome.next_node_id)
        elif outcome.kind == OutcomeType.ERROR:
            session.fail(outcome.error or "Erro desconhecido")
        return False

    # ==================== Helpers ====================

    def _next_node_id(self, node_id: str) -> Optional[str]:
        """Target of the node's unconditional edge (first edge without handle, else first edge)"""
        edges = self.flow.outgoing(node_id)
        for edge in edges:
            if not edge.source_handle:
                return edge.target
        return edges[0].target if edges else None

    def _unconditional_node_id(self, node_id: str) -> Optional[str]:
        """Where a failed node continues; branch edges are never taken blindly"""
        for edge in self.flow.outgoing(node_id):
            if not edge.source_handle:
                return edge.target
        return None

    @staticmethod
    def render(text: Optional[str], variables: Dict[str, Any]) -> str:
        """Replace ``{{var}}`` placeholders; unknown variables are left untouched"""
        if not text:
            return ""

        def replace(match: re.Match) -> str:
            key = match.group(1)
            if key not in variables:
                return match.group(0)
            value = variables[key]
            return "" if value is None else str(value)

        return VARIABLE_PATTERN.sub(replace, text)

    def _render_value(self, value: Any, variables: Dict[str, Any]) -> Any:
        if isinstance(value, str):
            return self.render(value, variables)
        if isinstance(value, dict):
            return {k: self._render_value(v, variables) for k, v in value.items()}
        if isinstance(value, list):
            return [self._render_value(v, variables) for v in value]
        return value

    @staticmethod
    def parse_input(text: str, expected_type: InputType) -> tuple[Any, bool]:
        """
        Convert a user reply according to the input node's expected type.

        Returns:
            (value, is_valid) - invalid replies keep the raw text
        """
        raw = (text or "").strip()
        lower = raw.lower()

        if expected_type == InputType.NUMBER:
            cleaned = re.sub(r"[^\d,.\-]", "", raw).replace(",", ".")
            try:
                return float(cleaned), True
            except ValueError:
                return raw, False

        if expected_type == InputType.CURRENCY:
            cleaned = re.sub(r"[^\d,.]", "", raw)
            if "," in cleaned:
                cleaned = cleaned.replace(".", "").replace(",", ".")
            elif cleaned.count(".") > 1 or re.search(r"\.\d{3}$", cleaned):
                cleaned = cleaned.replace(".", "")
            try:
                value = float(cleaned)
            except ValueError:
                return raw, False
            if "milh" in lower:
                value *= 1_000_000
            elif "mil" in lower:
                value *= 1_000
            return value, True

        if expected_type == InputType.YES_NO:
            if YES_PATTERN.match(lower):
                return True, True
            if NO_PATTERN.match(lower):
                return False, True
            return raw, False

        if expected_type == InputType.EMAIL:
            match = EMAIL_PATTERN.search(raw)
            return (match.group(0), True) if match else (raw, False)

        if expected_type == InputType.PHONE:
            digits = re.sub(r"\D", "", raw)
            return digits, len(digits) >= 10

        return raw, bool(raw)

    # ==================== Node Handlers ====================

    async def _handle_start(self, node: FlowNode, config: StartNodeConfig, session: FlowSession) -> NodeOutcome:
        return advance(
            self._next_node_id(node.id),
            f"Início ({config.trigger.value})",
            input={"trigger": config.trigger.value, "keywords": config.keywords}
        )

    async def _handle_message(self, node: FlowNode, config: MessageNodeConfig, session: FlowSession) -> NodeOutcome:
        text = self.render(config.text, session.variables)
        if config.delay and self.effects.inline_delays:
            await self.effects.wait(config.delay)
        await self.effects.send_message(session, text)
        session.add_message(MessageType.BOT, text, node.id)
        return advance(self._next_node_id(node.id), "Mensagem enviada", output={"text": text})

    async def _handle_condition(self, node: FlowNode, config: ConditionNodeConfig, session: FlowSession) -> NodeOutcome:
        session.add_message(
            MessageType.SYSTEM,
            f"🔀 Condição: aguardando resposta para avaliar ({config.condition_type.value})"
        )
        return wait_for_input(
            f"Condição: {config.condition_type.value}",
            input={"branches": [b.id for b in config.branches]}
        )

    async def _resume_condition(self, node: FlowNode, config: ConditionNodeConfig, session: FlowSession) -> NodeOutcome:
        text = session.variables.get("mensagem") or ""
        match = await self._select_branch(config, text, session)

        if match is None:
            return failure(
                f"Nenhuma branch corresponde à resposta na condição '{node.label}'",
                action="Condição sem correspondência",
                input={"conditionType": config.condition_type.value, "message": text}
            )

        session.add_message(MessageType.SYSTEM, f"➡️ Branch selecionada: {match.branch.label or match.branch.id}")
        edge = self.matcher.find_branch_edge(self.flow.edges, node.id, match)
        if edge is None:
            return failure(
                f"Branch '{match.branch.label or match.branch.id}' da condição '{node.label}' não tem saída",
                action="Branch sem conexão",
                input={"branch": match.branch.id}
            )

        return advance(
            edge.target,
            f"Branch: {match.branch.label or match.branch.id}",
            input={"conditionType": config.condition_type.value, "message": text},
            output={"matchedBranch": match.branch.id, "reason": match.reason}
        )

    async def _select_branch(self, config: ConditionNodeConfig, text: str, session: FlowSession) -> Optional[BranchMatch]:
        condition_type = config.condition_type

        if condition_type == ConditionType.KEYWORD:
            return self.matcher.match_keyword(config, text)

        if condition_type == ConditionType.VARIABLE:
            value = session.variables.get(config.variable_name) if config.variable_name else None
            return self.matcher.match_value(config.branches, value)

        if condition_type == ConditionType.TAG:
            tags = await self.effects.get_contact_tags(session)
            return self.matcher.match_value(config.branches, tags)

        if condition_type == ConditionType.INTENT:
            detected = await self.effects.detect_intent(text, config.intent)
            return self.matcher.match_intent(config.branches, config.intent, detected)

        if condition_type == ConditionType.TIME:
            return self.matcher.match_time(config, self.clock())

        return None

    async def _handle_input(self, node: FlowNode, config: InputNodeConfig, session: FlowSession) -> NodeOutcome:
        if config.prompt:
            prompt = self.render(config.prompt, session.variables)
            await self.effects.send_message(session, prompt)
            session.add_message(MessageType.BOT, prompt, node.id)
        session.add_message(
            MessageType.SYSTEM,
            f"📝 Aguardando entrada: {config.variable_name} ({config.expected_type.value})"
        )
        session.context["timeout"] = config.timeout
        session.context["timeout_action"] = config.timeout_action
        return wait_for_input(
            f"Aguardando input: {config.variable_name}",
            waiting_for=config.variable_name,
            input={"variableName": config.variable_name, "expectedType": config.expected_type.value}
        )

    async def _resume_input(self, node: FlowNode, config: InputNodeConfig, session: FlowSession) -> NodeOutcome:
        raw = session.variables.get("mensagem") or ""
        value, is_valid = self.parse_input(raw, config.expected_type)
        session.variables[config.variable_name] = value
        return advance(
            self._next_node_id(node.id),
            f"Variável capturada: {config.variable_name}",
            input={"rawInput": raw, "expectedType": config.expected_type.value},
            output={"value": value, "isValid": is_valid}
        )

    async def _handle_action(self, node: FlowNode, config: ActionNodeConfig, session: FlowSession) -> NodeOutcome:
        if config.action_type == ActionType.SET_VARIABLE:
            if not config.variable_name:
                return advance(self._next_node_id(node.id), "set_variable sem nome de variável", success=False)
            value = self._render_value(config.variable_value, session.variables)
            session.variables[config.variable_name] = value
            return advance(
                self._next_node_id(node.id),
                f"Variável definida: {config.variable_name}",
                output={config.variable_name: value}
            )

        fields: Dict[str, Any] = {}
        if config.action_type == ActionType.UPDATE_VISTA:
            fields = self._render_value(config.vista_fields, session.variables)
        elif config.action_type == ActionType.UPDATE_CONTACT:
            fields = self._render_value(config.contact_fields, session.variables)
        elif config.tag_id:
            fields = {"tagId": config.tag_id}

        result = await self.effects.run_action(session, config, fields)
        return advance(
            self._next_node_id(node.id),
            f"Ação: {config.action_type.value}",
            input=fields,
            output=result
        )

    async def _handle_delay(self, node: FlowNode, config: DelayNodeConfig, session: FlowSession) -> NodeOutcome:
        seconds = config.seconds
        next_node_id = self._next_node_id(node.id)

        if not self.effects.inline_delays:
            session.add_message(MessageType.SYSTEM, f"⏱️ Delay de {config.duration:g} {config.unit.value} ignorado no teste")
            return advance(next_node_id, "Delay ignorado", input={"seconds": seconds})

        if seconds > settings.FLOW_INLINE_DELAY_LIMIT_SECONDS:
            return pause(next_node_id, "Execução pausada (delay longo)", input={"seconds": seconds})

        await self.effects.wait(seconds)
        return advance(next_node_id, "Delay concluído", input={"seconds": seconds})

    async def _handle_escalation(self, node: FlowNode, config: EscalationNodeConfig, session: FlowSession) -> NodeOutcome:
        result = await self.effects.escalate(session, config)
        session.add_message(
            MessageType.SYSTEM,
            f"🚨 Escalado para {config.department or 'atendimento humano'} (prioridade {config.priority.value})"
        )
        return escalate(
            "Escalado",
            input={"department": config.department, "priority": config.priority.value, "reason": config.reason},
            output=result
        )

    async def _handle_integration(self, node: FlowNode, config: IntegrationNodeConfig, session: FlowSession) -> NodeOutcome:
        next_node_id = self._next_node_id(node.id)
        if not config.url:
            return advance(next_node_id, "Integração sem URL", success=False)

        body = self._render_value(config.body, session.variables) if config.method.upper() != "GET" else None
        result = await self.effects.call_integration(session, config, body)
        session.variables["integration_response"] = result.get("data")
        return advance(
            next_node_id,
            f"Integração chamada ({config.integration_type.value})",
            input={"url": config.url, "method": config.method},
            output=result
        )

    async def _handle_end(self, node: FlowNode, config: EndNodeConfig, session: FlowSession) -> NodeOutcome:
        text = None
        if config.message:
            text = self.render(config.message, session.variables)
            await self.effects.send_message(session, text)
            session.add_message(MessageType.BOT, text, node.id)
        if config.close_conversation:
            await self.effects.close_conversation(session)
        return complete("Fluxo finalizado", output={"message": text, "closeConversation": config.close_conversation})


def create_flow_executor(flow: FlowGraph | Dict[str, Any], effects: Optional[FlowEffects] = None) -> FlowExecutor:
    """Factory function to create a FlowExecutor"""
    return FlowExecutor(flow, effects=effects)
