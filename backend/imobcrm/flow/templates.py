"""
Built-in flow templates offered when creating a new flow
"""
from typing import Optional, Any, Dict, List
from pydantic import BaseModel, Field

from ..models.flow import FlowNode, FlowEdge, Department


class FlowTemplate(BaseModel):
    id: str
    name: str
    description: str
    category: str  # atendimento, vendas, confirmacao, qualificacao
    department: Department
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)


def _node(node_id: str, node_type: str, x: float, y: float, label: str, **config: Any) -> FlowNode:
    return FlowNode(
        id=node_id,
        type=node_type,
        position={"x": x, "y": y},
        data={"label": label, "config": config}
    )


def _edge(edge_id: str, source: str, target: str, handle: Optional[str] = None) -> FlowEdge:
    return FlowEdge(id=edge_id, source=source, target=target, source_handle=handle)


def _yes_no(first: tuple, second: tuple, keywords: List[str]) -> List[Dict[str, Any]]:
    """First branch answers "yes" on any keyword; the second is the catch-all"""
    return [
        {"id": first[0], "label": first[1], "value": "yes", "keywords": keywords},
        {"id": second[0], "label": second[1], "value": "no"},
    ]


# ============ Confirmação de Imóvel ============

CONFIRMACAO_IMOVEL = FlowTemplate(
    id="confirmacao-imovel",
    name="Confirmação de Imóvel",
    description="Fluxo para confirmar disponibilidade de imóveis com proprietários. Atualiza status no Vista automaticamente.",
    category="confirmacao",
    department=Department.MARKETING,
    nodes=[
        _node("start-1", "start", 250, 50, "Início", trigger="template_response"),
        _node(
            "message-1", "message", 250, 150, "Saudação",
            text="Olá {{nome}}! 👋\n\nRecebemos sua resposta. Poderia confirmar se o imóvel ainda está disponível?",
            delay=1, useClientName=True
        ),
        _node(
            "condition-1", "condition", 250, 280, "Verificar Resposta",
            conditionType="keyword",
            branches=_yes_no(
                ("yes", "Disponível"), ("no", "Indisponível"),
                ["sim", "disponível", "ainda", "está", "confirmo"],
            )
        ),
        _node(
            "action-1", "action", 100, 420, "Atualizar Vista - Disponível",
            actionType="update_vista",
            vistaFields={"propertyCode": "{{codigo_imovel}}", "status": "disponivel"}
        ),
        _node(
            "action-2", "action", 400, 420, "Atualizar Vista - Indisponível",
            actionType="update_vista",
            vistaFields={"propertyCode": "{{codigo_imovel}}", "status": "indisponivel"}
        ),
        _node(
            "message-2", "message", 100, 550, "Confirmação Positiva",
            text="Perfeito! ✅ Atualizamos o status do imóvel como disponível.\n\nObrigada pela confirmação!"
        ),
        _node(
            "message-3", "message", 400, 550, "Confirmação Negativa",
            text="Entendido! 📝 Atualizamos o status do imóvel.\n\nObrigada pela informação!"
        ),
        _node("end-1", "end", 250, 680, "Fim", message="Tenha um ótimo dia! 🌟", closeConversation=False),
    ],
    edges=[
        _edge("e1", "start-1", "message-1"),
        _edge("e2", "message-1", "condition-1"),
        _edge("e3", "condition-1", "action-1", "yes"),
        _edge("e4", "condition-1", "action-2", "no"),
        _edge("e5", "action-1", "message-2"),
        _edge("e6", "action-2", "message-3"),
        _edge("e7", "message-2", "end-1"),
        _edge("e8", "message-3", "end-1"),
    ],
)

# ============ Qualificação de Lead ============

QUALIFICACAO_LEAD = FlowTemplate(
    id="qualificacao-lead",
    name="Qualificação de Lead",
    description="Qualifica leads automaticamente perguntando se buscam compra ou locação, e direciona para o departamento correto.",
    category="qualificacao",
    department=Department.MARKETING,
    nodes=[
        _node("start-1", "start", 250, 50, "Início", trigger="first_message"),
        _node(
            "message-1", "message", 250, 150, "Boas Vindas",
            text="Olá! 👋 Seja bem-vindo(a) à nossa imobiliária!\n\nPara melhor atendê-lo(a), você está buscando imóvel para compra ou locação?",
            delay=2
        ),
        _node(
            "condition-1", "condition", 250, 280, "Tipo de Interesse",
            conditionType="keyword",
            branches=_yes_no(
                ("compra", "Compra"), ("locacao", "Locação"),
                ["compra", "comprar", "adquirir", "investir", "investimento"],
            )
        ),
        _node(
            "action-1", "action", 100, 420, "Tag: Comprador",
            actionType="update_contact", contactFields={"type": "interessado"}
        ),
        _node(
            "action-2", "action", 400, 420, "Tag: Inquilino",
            actionType="update_contact", contactFields={"type": "interessado"}
        ),
        _node(
            "escalation-1", "escalation", 100, 550, "Escalar para Vendas",
            department="vendas", priority="medium",
            reason="Lead interessado em compra - qualificado automaticamente"
        ),
        _node(
            "escalation-2", "escalation", 400, 550, "Escalar para Locação",
            department="locacao", priority="medium",
            reason="Lead interessado em locação - qualificado automaticamente"
        ),
    ],
    edges=[
        _edge("e1", "start-1", "message-1"),
        _edge("e2", "message-1", "condition-1"),
        _edge("e3", "condition-1", "action-1", "compra"),
        _edge("e4", "condition-1", "action-2", "locacao"),
        _edge("e5", "action-1", "escalation-1"),
        _edge("e6", "action-2", "escalation-2"),
    ],
)

# ============ FAQ Automático ============

FAQ_AUTOMATICO = FlowTemplate(
    id="faq-automatico",
    name="FAQ Automático",
    description="Responde perguntas frequentes sobre horário e endereço. Escala para humano quando não identifica a pergunta.",
    category="atendimento",
    department=Department.ADMINISTRATIVO,
    nodes=[
        _node("start-1", "start", 250, 50, "Início", trigger="keyword", keywords=["horário", "endereço", "telefone", "contato"]),
        _node(
            "condition-1", "condition", 250, 180, "Tipo de Pergunta",
            conditionType="keyword",
            branches=_yes_no(("horario", "Horário"), ("outro", "Outro"), ["horário", "hora", "funciona", "atendimento"])
        ),
        _node(
            "message-1", "message", 50, 320, "Resposta Horário",
            text="🕐 Nosso horário de atendimento:\n\nSegunda a Sexta: 9h às 18h\nSábado: 9h às 13h\nDomingo e feriados: Fechado\n\nPosso ajudar com mais alguma coisa?"
        ),
        _node(
            "condition-2", "condition", 400, 320, "Endereço?",
            conditionType="keyword",
            branches=_yes_no(("endereco", "Endereço"), ("outro", "Outro"), ["endereço", "onde", "localização", "fica"])
        ),
        _node(
            "message-2", "message", 300, 460, "Resposta Endereço",
            text="📍 Nosso endereço:\n\nRua Example, 123 - Centro\nCidade/UF\nCEP: 00000-000\n\nPosso ajudar com mais alguma coisa?"
        ),
        _node(
            "escalation-1", "escalation", 500, 460, "Escalar Atendimento",
            department="administrativo", priority="low",
            reason="Pergunta não identificada pelo FAQ automático"
        ),
        _node("end-1", "end", 175, 580, "Fim", closeConversation=False),
    ],
    edges=[
        _edge("e1", "start-1", "condition-1"),
        _edge("e2", "condition-1", "message-1", "horario"),
        _edge("e3", "condition-1", "condition-2", "outro"),
        _edge("e4", "message-1", "end-1"),
        _edge("e5", "condition-2", "message-2", "endereco"),
        _edge("e6", "condition-2", "escalation-1", "outro"),
        _edge("e7", "message-2", "end-1"),
    ],
)

# ============ Agendamento de Visita ============

AGENDAMENTO_VISITA = FlowTemplate(
    id="agendamento-visita",
    name="Agendamento de Visita",
    description="Inicia processo de agendamento de visita e escala para corretor com prioridade alta.",
    category="vendas",
    department=Department.VENDAS,
    nodes=[
        _node("start-1", "start", 250, 50, "Início", trigger="keyword", keywords=["visita", "agendar", "ver", "conhecer"]),
        _node(
            "message-1", "message", 250, 150, "Confirmar Interesse",
            text="Ótimo! 🏠 Você gostaria de agendar uma visita ao imóvel?\n\nPor favor, me informe qual dia e horário seria melhor para você.",
            delay=1
        ),
        _node("delay-1", "delay", 250, 280, "Aguardar Resposta", duration=5, unit="minutes"),
        _node(
            "escalation-1", "escalation", 250, 400, "Escalar para Corretor",
            department="vendas", priority="high",
            reason="Cliente deseja agendar visita - prioridade alta"
        ),
    ],
    edges=[
        _edge("e1", "start-1", "message-1"),
        _edge("e2", "message-1", "delay-1"),
        _edge("e3", "delay-1", "escalation-1"),
    ],
)

FLOW_TEMPLATES: List[FlowTemplate] = [
    CONFIRMACAO_IMOVEL,
    QUALIFICACAO_LEAD,
    FAQ_AUTOMATICO,
    AGENDAMENTO_VISITA,
]


def get_templates_by_category(category: str) -> List[FlowTemplate]:
    return [t for t in FLOW_TEMPLATES if t.category == category]


def get_template_by_id(template_id: str) -> Optional[FlowTemplate]:
    for template in FLOW_TEMPLATES:
        if template.id == template_id:
            return template
    return None
