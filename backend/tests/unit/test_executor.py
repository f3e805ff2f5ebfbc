"""
Tests for the flow executor (graph walker).
"""
import pytest
from datetime import datetime

from imobcrm.flow import FlowExecutor, FlowSession, SessionStatus, SimulatedEffects
from imobcrm.flow.result import advance, wait_for_input, failure
from imobcrm.flow.templates import CONFIRMACAO_IMOVEL
from imobcrm.models.flow import InputType, FlowGraph

from tests.conftest import node, edge


class RecordingDelayEffects(SimulatedEffects):
    """Simulated effects that honour delay nodes like the live runtime"""

    inline_delays = True

    def __init__(self):
        super().__init__()
        self.waited = []

    async def wait(self, seconds: float) -> None:
        self.waited.append(seconds)


class TestStart:
    """Tests for starting a walk"""

    @pytest.mark.asyncio
    async def test_linear_flow_completes(self, linear_flow, effects):
        """A flow without waiting nodes runs to completion in one walk"""
        session = await FlowExecutor(linear_flow, effects=effects).start()

        assert session.status == SessionStatus.COMPLETED
        assert session.bot_messages() == ["Bem-vindo!"]
        assert session.visited_nodes == ["start-1", "message-1", "end-1"]

    @pytest.mark.asyncio
    async def test_default_test_variables_are_seeded(self, linear_flow):
        """Test sessions get a default name and phone"""
        session = await FlowExecutor(linear_flow).start(variables={"cidade": "Florianópolis"})

        assert session.variables["nome"] == "Cliente Teste"
        assert session.variables["telefone"] == "+5548999999999"
        assert session.variables["cidade"] == "Florianópolis"

    @pytest.mark.asyncio
    async def test_flow_without_start_fails(self):
        """A flow with no start node ends in error"""
        flow = {"nodes": [node("message-1", "message", text="Oi")], "edges": []}
        session = await FlowExecutor(flow).start()

        assert session.status == SessionStatus.ERROR
        assert session.error

    @pytest.mark.asyncio
    async def test_greeting_uses_variables(self, keyword_flow, effects):
        """Message text has {{var}} placeholders replaced"""
        session = await FlowExecutor(keyword_flow, effects=effects).start()

        assert session.bot_messages()[0] == "Olá Cliente Teste! Você quer alugar ou comprar?"
        assert effects.calls[0]["type"] == "send_message"


class TestConditions:
    """Tests for condition nodes"""

    @pytest.mark.asyncio
    async def test_condition_waits_for_reply(self, keyword_flow):
        """The walk stops at a condition until the user answers"""
        session = await FlowExecutor(keyword_flow).start()

        assert session.status == SessionStatus.WAITING_INPUT
        assert session.current_node_id == "condition-1"

    @pytest.mark.asyncio
    async def test_keyword_branch_selected(self, keyword_flow):
        """A reply containing a branch keyword follows that branch"""
        executor = FlowExecutor(keyword_flow)
        session = await executor.start()
        await executor.send_message(session, "Quero ALUGAR um apartamento")

        assert session.status == SessionStatus.COMPLETED
        assert "message-aluguel" in session.visited_nodes
        assert session.bot_messages()[-1] == "Até logo, Cliente Teste!"

    @pytest.mark.asyncio
    async def test_unmatched_reply_uses_default_branch(self, keyword_flow):
        """A reply matching no keyword follows the catch-all branch"""
        executor = FlowExecutor(keyword_flow)
        session = await executor.start()
        await executor.send_message(session, "bom dia")

        assert "message-outro" in session.visited_nodes
        assert session.variables["mensagem"] == "bom dia"

    @pytest.mark.asyncio
    async def test_no_matching_branch_fails(self):
        """Without a catch-all branch an unmatched reply is an error"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("condition-1", "condition", conditionType="keyword", branches=[
                    {"id": "a", "keywords": ["alpha"]},
                    {"id": "b", "keywords": ["beta"]},
                ]),
                node("end-1", "end"),
            ],
            "edges": [
                edge("start-1", "condition-1"),
                edge("condition-1", "end-1", "branch-a"),
                edge("condition-1", "end-1", "branch-b"),
            ],
        }
        executor = FlowExecutor(flow)
        session = await executor.start()
        await executor.send_message(session, "gamma")

        assert session.status == SessionStatus.ERROR
        assert session.execution_log[-1].success is False

    @pytest.mark.asyncio
    async def test_confirmation_template(self):
        """Confirmation keywords route to the yes branch, anything else to no"""
        executor = FlowExecutor(CONFIRMACAO_IMOVEL.model_dump(by_alias=True))

        yes_session = await executor.start(variables={"codigo_imovel": "12345"})
        await executor.send_message(yes_session, "Sim, está disponível")
        no_session = await executor.start(variables={"codigo_imovel": "12345"})
        await executor.send_message(no_session, "Já foi vendido")

        assert "action-1" in yes_session.visited_nodes
        assert yes_session.variables["codigo_imovel"] == "12345"
        assert "action-2" in no_session.visited_nodes
        assert no_session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_variable_condition(self):
        """Variable conditions compare the variable bag to branch values"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("condition-1", "condition", conditionType="variable", variableName="interesse", branches=[
                    {"id": "compra", "value": "compra"},
                    {"id": "outro", "value": ""},
                ]),
                node("end-compra", "end", message="compra"),
                node("end-outro", "end", message="outro"),
            ],
            "edges": [
                edge("start-1", "condition-1"),
                edge("condition-1", "end-compra", "branch-compra"),
                edge("condition-1", "end-outro", "branch-outro"),
            ],
        }
        executor = FlowExecutor(flow)
        session = await executor.start(variables={"interesse": "Compra"})
        await executor.send_message(session, "ok")

        assert session.bot_messages() == ["compra"]

    @pytest.mark.asyncio
    async def test_intent_condition_uses_effects_answer(self):
        """Intent conditions without branch values go yes/no positionally"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("condition-1", "condition", conditionType="intent", intent="agendar_visita", branches=[
                    {"id": "sim", "label": "Sim"},
                    {"id": "nao", "label": "Não"},
                ]),
                node("end-sim", "end", message="agendando"),
                node("end-nao", "end", message="tudo bem"),
            ],
            "edges": [
                edge("start-1", "condition-1"),
                edge("condition-1", "end-sim", "source-0"),
                edge("condition-1", "end-nao", "source-1"),
            ],
        }
        effects = SimulatedEffects(intent_answers={"agendar_visita": False})
        executor = FlowExecutor(flow, effects=effects)
        session = await executor.start()
        await executor.send_message(session, "quero visitar amanhã")

        assert session.bot_messages() == ["tudo bem"]

    @pytest.mark.asyncio
    async def test_time_condition_uses_clock(self):
        """Time conditions use the injected clock"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("condition-1", "condition", conditionType="time",
                     timeRange={"start": "09:00", "end": "18:00"},
                     branches=[{"id": "aberto"}, {"id": "fechado"}]),
                node("end-aberto", "end", message="aberto"),
                node("end-fechado", "end", message="fechado"),
            ],
            "edges": [
                edge("start-1", "condition-1"),
                edge("condition-1", "end-aberto", "aberto"),
                edge("condition-1", "end-fechado", "fechado"),
            ],
        }
        executor = FlowExecutor(flow, clock=lambda: datetime(2026, 3, 2, 22, 30))
        session = await executor.start()
        await executor.send_message(session, "olá")

        assert session.bot_messages() == ["fechado"]

    @pytest.mark.asyncio
    async def test_message_ignored_when_not_waiting(self, linear_flow):
        """Messages sent to a finished session change nothing"""
        executor = FlowExecutor(linear_flow)
        session = await executor.start()
        await executor.send_message(session, "oi")

        assert session.status == SessionStatus.COMPLETED
        assert "mensagem" not in session.variables


class TestInputNodes:
    """Tests for input nodes"""

    @pytest.mark.asyncio
    async def test_input_captures_currency(self, input_flow, effects):
        """The reply is parsed and stored under the node's variable"""
        executor = FlowExecutor(input_flow, effects=effects)
        session = await executor.start()

        assert session.bot_messages() == ["Qual o seu orçamento, Cliente Teste?"]
        assert session.context["timeout"] == 120
        assert session.context["timeout_action"] == "escalate"

        await executor.send_message(session, "R$ 500 mil")

        assert session.variables["orcamento"] == 500000.0
        assert session.status == SessionStatus.COMPLETED
        assert any(c["type"] == "close_conversation" for c in effects.calls)

    @pytest.mark.parametrize("text,expected", [
        ("R$ 2,5 milhões", (2500000.0, True)),
        ("1.500.000", (1500000.0, True)),
        ("R$ 850.000,00", (850000.0, True)),
        ("sei lá", ("sei lá", False)),
    ])
    def test_parse_currency(self, text, expected):
        """Currency replies accept Brazilian formats and mil/milhões"""
        assert FlowExecutor.parse_input(text, InputType.CURRENCY) == expected

    @pytest.mark.parametrize("text,expected", [
        ("Sim", (True, True)),
        ("nao", (False, True)),
        ("talvez", ("talvez", False)),
    ])
    def test_parse_yes_no(self, text, expected):
        """Yes/no replies have three outcomes"""
        assert FlowExecutor.parse_input(text, InputType.YES_NO) == expected

    def test_parse_email_and_phone(self):
        """Email is extracted from text; phones need at least ten digits"""
        assert FlowExecutor.parse_input("meu email é ana@smolka.com.br", InputType.EMAIL) == ("ana@smolka.com.br", True)
        assert FlowExecutor.parse_input("(48) 99999-8888", InputType.PHONE) == ("48999998888", True)
        assert FlowExecutor.parse_input("9999", InputType.PHONE) == ("9999", False)


class TestRender:
    """Tests for variable substitution"""

    def test_unknown_variables_left_untouched(self):
        """Placeholders without a value stay in the text"""
        text = FlowExecutor.render("Olá {{nome}}, código {{codigo}}", {"nome": "Ana"})
        assert text == "Olá Ana, código {{codigo}}"

    def test_none_renders_empty(self):
        assert FlowExecutor.render("[{{ valor }}]", {"valor": None}) == "[]"
        assert FlowExecutor.render(None, {}) == ""


class TestActionsAndTerminals:
    """Tests for action, escalation and end nodes"""

    @pytest.mark.asyncio
    async def test_set_variable_action(self):
        """set_variable renders its value into the variable bag"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("action-1", "action", actionType="set_variable",
                     variableName="saudacao", variableValue="Oi {{nome}}"),
                node("end-1", "end", message="{{saudacao}}"),
            ],
            "edges": [edge("start-1", "action-1"), edge("action-1", "end-1")],
        }
        session = await FlowExecutor(flow).start()

        assert session.variables["saudacao"] == "Oi Cliente Teste"
        assert session.bot_messages() == ["Oi Cliente Teste"]

    @pytest.mark.asyncio
    async def test_add_tag_action_updates_simulated_tags(self, effects):
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("action-1", "action", actionType="add_tag", tagId="tag-vip"),
                node("end-1", "end"),
            ],
            "edges": [edge("start-1", "action-1"), edge("action-1", "end-1")],
        }
        await FlowExecutor(flow, effects=effects).start()

        assert effects.contact_tags == ["tag-vip"]

    @pytest.mark.asyncio
    async def test_escalation_is_terminal(self, effects):
        """Escalation stops the walk even when the node has an outgoing edge"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("escalation-1", "escalation", department="locacao", priority="high"),
                node("message-1", "message", text="nunca enviada"),
            ],
            "edges": [edge("start-1", "escalation-1"), edge("escalation-1", "message-1")],
        }
        session = await FlowExecutor(flow, effects=effects).start()

        assert session.status == SessionStatus.ESCALATED
        assert session.bot_messages() == []
        assert effects.calls == [{"type": "escalation", "department": "locacao", "priority": "high"}]

    @pytest.mark.asyncio
    async def test_integration_response_stored(self, effects):
        """Integration results are exposed as a variable"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("integration-1", "integration", url="https://example.com/hook",
                     body={"telefone": "{{telefone}}"}),
                node("end-1", "end"),
            ],
            "edges": [edge("start-1", "integration-1"), edge("integration-1", "end-1")],
        }
        session = await FlowExecutor(flow, effects=effects).start()

        assert session.variables["integration_response"] == {"simulated": True, "url": "https://example.com/hook"}
        assert effects.calls[0]["body"] == {"telefone": "+5548999999999"}


class TestFailureModes:
    """Tests for broken graphs"""

    @pytest.mark.asyncio
    async def test_dead_end_is_error(self):
        flow = {
            "nodes": [node("start-1", "start"), node("message-1", "message", text="Oi")],
            "edges": [edge("start-1", "message-1")],
        }
        session = await FlowExecutor(flow).start()

        assert session.status == SessionStatus.ERROR
        assert "dead end" in session.error

    @pytest.mark.asyncio
    async def test_step_limit_stops_cycles(self):
        """A cyclic graph is cut off after max_steps nodes"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("message-a", "message", text="a"),
                node("message-b", "message", text="b"),
            ],
            "edges": [
                edge("start-1", "message-a"),
                edge("message-a", "message-b"),
                edge("message-b", "message-a"),
            ],
        }
        session = await FlowExecutor(flow, max_steps=5).start()

        assert session.status == SessionStatus.ERROR
        assert len(session.execution_log) == 5
        assert "5" in session.error

    @pytest.mark.asyncio
    async def test_malformed_node_is_skipped(self):
        """A node with an invalid config is logged as failed and the walk goes on"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("action-1", "action"),
                node("mystery-1", "carousel"),
                node("end-1", "end", message="fim"),
            ],
            "edges": [
                edge("start-1", "action-1"),
                edge("action-1", "mystery-1"),
                edge("mystery-1", "end-1"),
            ],
        }
        session = await FlowExecutor(flow).start()

        assert session.status == SessionStatus.COMPLETED
        failed = [entry.node_id for entry in session.execution_log if not entry.success]
        assert failed == ["action-1", "mystery-1"]

    @pytest.mark.asyncio
    async def test_malformed_condition_does_not_pick_a_branch(self):
        """Without an unconditional edge a broken condition is a dead end"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("condition-1", "condition", branches=[{"id": "yes", "keywords": None}, {"id": "no"}]),
                node("message-yes", "message", text="caminho SIM"),
                node("message-no", "message", text="caminho NÃO"),
                node("end-1", "end"),
            ],
            "edges": [
                edge("start-1", "condition-1"),
                edge("condition-1", "message-yes", "branch-yes"),
                edge("condition-1", "message-no", "branch-no"),
                edge("message-yes", "end-1"),
                edge("message-no", "end-1"),
            ],
        }
        session = await FlowExecutor(flow).start()

        assert session.status == SessionStatus.ERROR
        assert "dead end" in session.error
        assert session.bot_messages() == []
        assert "message-yes" not in session.visited_nodes

    @pytest.mark.asyncio
    async def test_malformed_condition_follows_unconditional_edge(self):
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("condition-1", "condition", branches=[{"id": "yes", "keywords": None}]),
                node("message-yes", "message", text="caminho SIM"),
                node("end-1", "end", message="fallback"),
            ],
            "edges": [
                edge("start-1", "condition-1"),
                edge("condition-1", "message-yes", "branch-yes"),
                edge("condition-1", "end-1"),
                edge("message-yes", "end-1"),
            ],
        }
        session = await FlowExecutor(flow).start()

        assert session.status == SessionStatus.COMPLETED
        assert "message-yes" not in session.visited_nodes

    @pytest.mark.asyncio
    async def test_long_delay_pauses_with_inline_delays(self):
        """With real waits, delays over the inline limit pause the session"""
        flow = {
            "nodes": [
                node("start-1", "start"),
                node("delay-1", "delay", duration=5),
                node("delay-2", "delay", duration=2, unit="hours"),
                node("end-1", "end"),
            ],
            "edges": [
                edge("start-1", "delay-1"),
                edge("delay-1", "delay-2"),
                edge("delay-2", "end-1"),
            ],
        }
        effects = RecordingDelayEffects()
        executor = FlowExecutor(flow, effects=effects)
        session = await executor.start()

        assert effects.waited == [5]
        assert session.status == SessionStatus.PAUSED
        assert session.current_node_id == "end-1"

        await executor.resume(session)
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_delays_skipped_in_test_mode(self):
        flow = {
            "nodes": [node("start-1", "start"), node("delay-1", "delay", duration=1, unit="hours"), node("end-1", "end")],
            "edges": [edge("start-1", "delay-1"), edge("delay-1", "end-1")],
        }
        session = await FlowExecutor(flow).start()

        assert session.status == SessionStatus.COMPLETED


class TestSessionRows:
    """Tests for restoring persisted sessions"""

    def test_waiting_response_maps_to_waiting_input(self, sample_execution_row):
        session = FlowSession.from_execution_row(sample_execution_row)

        assert session.status == SessionStatus.WAITING_INPUT
        assert session.execution_id == "exec-1"
        assert session.variables == {"nome": "Maria"}

    @pytest.mark.asyncio
    async def test_restored_session_resumes(self, keyword_flow, sample_execution_row):
        executor = FlowExecutor(FlowGraph(**keyword_flow))
        session = FlowSession.from_execution_row(sample_execution_row)
        await executor.send_message(session, "quero comprar")

        assert session.bot_messages() == ["Vou te passar para vendas.", "Até logo, Maria!"]


class TestNodeOutcome:
    """Tests for node outcomes"""

    def test_only_advance_keeps_walking(self):
        assert not advance("message-1", "Mensagem enviada").stops_walk
        assert wait_for_input("Aguardando resposta").stops_walk
        assert failure("boom").stops_walk
