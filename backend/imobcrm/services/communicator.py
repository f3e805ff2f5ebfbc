"""
AI Communicator - CRM assistant chat for operators
"""
import json
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional, Any, Dict, List

from .database import db, MESSAGES_TABLE, CONTACTS_TABLE
from .llm import llm, LLMService

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Olá! Sou seu assistente de IA da Smolka Imóveis. Posso ajudar com:\n\n"
    "• Criar tickets automaticamente\n"
    "• Gerar relatórios\n"
    "• Sugerir respostas\n"
    "• Analisar dados do CRM\n\n"
    "Como posso ajudar?"
)

HISTORY_WINDOW = 10

SYSTEM_PROMPT = """Você é um assistente de IA avançado para a administradora de imóveis Smolka com ACESSO COMPLETO À PLATAFORMA.

🎯 CAPACIDADES PRINCIPAIS:
- Análise completa de conversas e mensagens
- Gestão completa de tickets e demandas
- Relatórios detalhados em tempo real
- Gestão de contatos e relacionamentos
- Insights preditivos e recomendações

📊 DADOS DISPONÍVEIS EM TEMPO REAL:
{context}

🤖 PERSONALIDADE:
Seja proativo, analítico e estratégico. Não apenas responda perguntas, mas:
- Identifique padrões e tendências
- Sugira melhorias e otimizações
- Forneça contexto e insights acionáveis
- Use os dados para recomendar ações concretas

Quando o usuário pedir qualquer informação, consulte os dados disponíveis e forneça respostas detalhadas e úteis."""

INSIGHTS_PROMPT = """Analise os dados do CRM e gere insights acionáveis:

DADOS ATUAIS:
{context}

Forneça:
1. Tendências identificadas
2. Oportunidades de melhoria
3. Alertas importantes
4. Recomendações de ação

Seja específico e prático."""


def _function_tool(name: str, description: str, properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    parameters: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required
    return {"type": "function", "function": {"name": name, "description": description, "parameters": parameters}}


ASSISTANT_TOOLS = [
    _function_tool(
        "create_ticket", "Criar um ticket no sistema",
        {
            "phone": {"type": "string"},
            "title": {"type": "string"},
            "description": {"type": "string"},
            "category": {"type": "string"},
            "priority": {"type": "string"},
        },
        ["phone", "title", "description"]
    ),
    _function_tool(
        "generate_report", "Gerar relatório de dados específicos",
        {
            "type": {"type": "string", "enum": ["messages", "tickets", "contacts", "performance", "complete"]},
            "period": {"type": "string", "enum": ["today", "week", "month", "custom"]},
        },
        ["type"]
    ),
    _function_tool(
        "get_contact_profile", "Obter perfil completo de um contato",
        {"phone": {"type": "string"}},
        ["phone"]
    ),
    _function_tool(
        "get_ticket_status", "Obter status detalhado de tickets",
        {"stage": {"type": "string"}, "priority": {"type": "string"}}
    ),
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CommunicatorService:
    """
    Operator assistant backed by the LLM.

    Actions:
    - start_conversation: new ai_conversations row with the welcome message
    - send_message: answer with CRM context, persist both turns
    - get_insights: trends / opportunities / alerts / recommendations
    - execute_command: one-shot command without history
    """

    def __init__(self, llm_service: Optional[LLMService] = None):
        self.llm = llm_service or llm

    async def handle(self, action: Optional[str], payload: Dict[str, Any]) -> Dict[str, Any]:
        """Dispatch one request; unknown actions raise ValueError"""
        if not self.llm.is_configured:
            raise ValueError("OpenAI API key not configured")

        logger.info(f"[Communicator] Action: {action}")
        if action == "start_conversation":
            return await self.start_conversation(payload.get("userId"))
        if action == "send_message":
            return await self.send_message(
                payload.get("userId"), payload.get("message") or "",
                payload.get("conversationId"), payload.get("context")
            )
        if action == "get_insights":
            return await self.get_insights()
        if action == "execute_command":
            return await self.execute_command(payload.get("message") or "")
        raise ValueError(f"Unknown action: {action}")

    async def start_conversation(self, user_id: Optional[str]) -> Dict[str, Any]:
        conversation = await db.create_ai_conversation({
            "user_id": user_id,
            "conversation_type": "assistant",
            "messages": [{"role": "assistant", "content": WELCOME_MESSAGE, "timestamp": _now_iso()}],
        })
        return {"success": True, "conversation": conversation}

    async def send_message(
        self,
        user_id: Optional[str],
        message: str,
        conversation_id: Optional[str],
        context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        conversation = await db.get_ai_conversation(conversation_id) if conversation_id else None
        if not conversation:
            raise ValueError("Conversation not found")

        history = conversation.get("messages") or []
        business_context = await self.get_business_context()
        reply = await self.generate_response(message, history, business_context)

        updated = [
            *history,
            {"role": "user", "content": message, "timestamp": _now_iso()},
            {"role": "assistant", "content": reply["message"], "timestamp": _now_iso(), "actions": reply["actions"]},
        ]
        await db.update_ai_conversation(conversation_id, {"messages": updated, "context_data": context})

        await self.execute_actions(reply["actions"])
        return {"success": True, "message": reply["message"], "actions": reply["actions"]}

    async def execute_command(self, command: str) -> Dict[str, Any]:
        business_context = await self.get_business_context()
        reply = await self.generate_response(command, [], business_context)
        await self.execute_actions(reply["actions"])
        return {"success": True, "message": reply["message"], "actions": reply["actions"]}

    async def get_insights(self) -> Dict[str, Any]:
        business_context = await self.get_business_context()
        prompt = INSIGHTS_PROMPT.format(context=json.dumps(business_context, ensure_ascii=False, indent=2, default=str))
        reply = await self.llm.complete([{"role": "user", "content": prompt}], temperature=0.7)
        return {"success": True, "insights": reply.content}

    # ==================== LLM ====================

    async def generate_response(
        self,
        message: str,
        history: List[Dict[str, Any]],
        business_context: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Ask the model for an answer; tool calls become pending actions.

        Returns:
            {"message": str, "actions": [{"type", "parameters"}]}
        """
        system = SYSTEM_PROMPT.format(context=json.dumps(business_context, ensure_ascii=False, indent=2, default=str))
        messages = [
            {"role": "system", "content": system},
            *[{"role": m.get("role"), "content": m.get("content") or ""} for m in history[-HISTORY_WINDOW:]],
            {"role": "user", "content": message},
        ]

        reply = await self.llm.complete(messages, temperature=0.7, tools=ASSISTANT_TOOLS)

        actions = []
        for call in reply.tool_calls or []:
            try:
                parameters = json.loads(call.function.arguments or "{}")
            except ValueError:
                logger.warning(f"[Communicator] Invalid tool arguments for {call.function.name}")
                parameters = {}
            actions.append({"type": call.function.name, "parameters": parameters})

        text = reply.content or ""
        if actions:
            text = f"Perfeito! Vou executar essa ação para você. {text}".strip()
        return {"message": text, "actions": actions}

    async def get_business_context(self) -> Dict[str, Any]:
        """CRM counters plus recent activity for the system prompt"""
        now = datetime.now(timezone.utc)
        today = now.replace(hour=0, minute=0, second=0, microsecond=0).isoformat()
        week_ago = (now - timedelta(days=7)).isoformat()

        recent = await db.recent_messages(limit=20)
        active_numbers = {m.get("wa_from") for m in recent if m.get("direction") == "inbound" and m.get("wa_from")}

        return {
            "stats": {
                "todayMessages": await db.count_rows(MESSAGES_TABLE, since=today),
                "weekMessages": await db.count_rows(MESSAGES_TABLE, since=week_ago),
                "totalContacts": await db.count_rows(CONTACTS_TABLE),
                "activeContacts": await db.count_rows(CONTACTS_TABLE, {"status": "ativo"}),
                "activeConversations": len(active_numbers),
            },
            "recentActivity": {"messages": recent},
            "currentDateTime": now.isoformat(),
        }

    # ==================== ACTIONS ====================

    async def execute_actions(self, actions: List[Dict[str, Any]]) -> None:
        """Run actions with side effects; read-only actions are answered by the model"""
        for action in actions:
            try:
                if action["type"] == "create_ticket":
                    await self.create_ticket(action.get("parameters") or {})
                else:
                    logger.debug(f"[Communicator] Action {action['type']} has no side effect")
            except Exception as e:
                logger.error(f"[Communicator] Error executing action {action.get('type')}: {e}")

    async def create_ticket(self, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await db.create_ticket({
            "phone": params.get("phone"),
            "title": params.get("title"),
            "description": params.get("description"),
            "category": params.get("category") or "geral",
            "priority": params.get("priority") or "media",
            "stage": "novo",
            "type": "geral",
            "source": "ai_assistant",
        })


communicator = CommunicatorService()
