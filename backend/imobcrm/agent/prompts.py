"""
Department prompt templates for the WhatsApp agent.

This module contains:
- Florianópolis region knowledge shared by the sales-side prompts
- One template per department (locacao, vendas, administrativo,
  empreendimentos, geral)
- Token estimation used by the prompt preview screen

Output is deterministic: the same config and department always give the
same text, so the preview matches what the agent receives.
"""
import math
from typing import Optional, Dict, List

from ..models import AgentConfig, AgentTone, PromptDepartment

FLORIANOPOLIS_REGIONS: Dict[str, Dict[str, object]] = {
    "norte": {
        "nome": "Região Norte",
        "bairros": ["Ingleses", "Canasvieiras", "Jurerê", "Daniela", "Santinho", "Ponta das Canas", "Lagoinha", "Vargem Grande"],
    },
    "sul": {
        "nome": "Região Sul",
        "bairros": ["Campeche", "Rio Tavares", "Armação", "Pântano do Sul", "Ribeirão da Ilha", "Carianos"],
    },
    "leste": {
        "nome": "Região Leste",
        "bairros": ["Lagoa da Conceição", "Barra da Lagoa", "Costa da Lagoa", "Praia Mole", "Joaquina"],
    },
    "centro": {
        "nome": "Região Central",
        "bairros": ["Centro", "Agronômica", "Trindade", "Córrego Grande", "Pantanal", "Santa Mônica", "Itacorubi"],
    },
    "continente": {
        "nome": "Continente",
        "bairros": ["Estreito", "Coqueiros", "Itaguaçu", "Abraão", "Capoeiras", "Balneário"],
    },
}

REGION_SHORTCUTS = [
    '- "norte" → Ingleses, Canasvieiras, Jurerê...',
    '- "sul" → Campeche, Armação, Ribeirão...',
    '- "leste" ou "lagoa" → Lagoa da Conceição, Barra...',
    '- "centro" → Trindade, Agronômica, Itacorubi...',
    '- "continente" → Estreito, Coqueiros...',
]

TOKEN_STATUS_GOOD = "Bom"
TOKEN_STATUS_MEDIUM = "Médio"
TOKEN_STATUS_HIGH = "Alto"

# Shared by locacao and vendas
PROPERTY_PRESENTATION_RULES = """🏠 REGRAS PARA APRESENTAR IMÓVEIS:
- NUNCA envie lista grande. Sistema envia 1 imóvel por vez.
- Estrutura obrigatória:
  1. Contexto: "Encontrei um imóvel que pode combinar com o que você busca."
  2. Dados: tipo, bairro, quartos, preço, diferencial
  3. Pergunta: "Esse imóvel faz sentido pra você?"
- AGUARDE a resposta antes de mostrar outro imóvel
- Se cliente disser NÃO: pergunte o que não se encaixou
- Se cliente demonstrar INTERESSE: iniciar encaminhamento ao consultor

🚫 REGRA CRÍTICA - NUNCA AGENDAR VISITAS:
- NUNCA ofereça datas, horários ou confirmação de visita
- SEMPRE diga: "Quem vai agendar a visita é um consultor da Smolka Imóveis"
- SEMPRE diga: "Vou te conectar com um consultor especializado"

📤 FLUXO DE ENCAMINHAMENTO C2S:
Quando cliente demonstrar interesse ("gostei", "quero visitar", "pode marcar"):
1. Confirmar: "Perfeito! Posso te conectar com um consultor para organizar a visita?"
2. Se concordar: coletar/confirmar nome, telefone, código do imóvel
3. Usar enviar_lead_c2s com todos os dados
4. Mensagem final: "Pronto! Um consultor vai entrar em contato para tirar dúvidas e agendar a visita."
5. NÃO oferecer mais imóveis após transferência (a menos que cliente peça)

💬 ESTILO CONSULTIVO:
- "Encontrei um imóvel que pode combinar com o que você busca! 🏠"
- "Esse imóvel faz sentido pra você?"
- "Entendi! O que não se encaixou? Preço, tamanho ou localização?"
- "Vou te conectar com um consultor especializado 😊\""""


class PromptBuilder:
    """Builds department prompts from the unified agent configuration."""

    TONE_DESCRIPTIONS = {
        AgentTone.FRIENDLY.value: "amigável, caloroso e acolhedor",
        AgentTone.FORMAL.value: "profissional, respeitoso e formal",
        AgentTone.CASUAL.value: "descontraído, informal e próximo",
        AgentTone.PROFESSIONAL.value: "objetivo, cordial e profissional",
    }

    @staticmethod
    def region_knowledge() -> str:
        lines: List[str] = ["\n📍 CONHECIMENTO LOCAL DE FLORIANÓPOLIS:", ""]
        for region in FLORIANOPOLIS_REGIONS.values():
            lines.append(f"{str(region['nome']).upper()}: {', '.join(region['bairros'])}")
        lines.append("")
        lines.append("⚡ REGIÕES:")
        lines.extend(REGION_SHORTCUTS)
        return "\n".join(lines)

    @staticmethod
    def preferences_section(config: AgentConfig) -> str:
        """Tone and business rules; empty for the default tone without rules"""
        lines: List[str] = []
        if config.tone != AgentTone.FRIENDLY:
            lines.append(f"🗣️ TOM DE VOZ: {PromptBuilder.TONE_DESCRIPTIONS[config.tone.value]}")
        rules = [rule.strip() for rule in config.business_rules if rule and rule.strip()]
        if rules:
            if lines:
                lines.append("")
            lines.append("📌 REGRAS DO NEGÓCIO:")
            lines.extend(f"- {rule}" for rule in rules)
        return "\n".join(lines)

    @staticmethod
    def _finish(body: str, config: AgentConfig) -> str:
        # custom_instructions must stay the last thing in the prompt
        preferences = PromptBuilder.preferences_section(config)
        if preferences:
            body = f"{body}\n\n{preferences}"
        custom = f"\n📝 INSTRUÇÕES ESPECIAIS:\n{config.custom_instructions}" if config.custom_instructions else ""
        return f"{body}\n\n{custom}"

    # ==================== Department templates ====================

    @staticmethod
    def build_locacao_prompt(config: AgentConfig) -> str:
        body = f"""🚨 REGRA ZERO: Você é {config.agent_name} da {config.company_name} em Florianópolis/SC.

👤 CLIENTE: {{nome do contato}} - Use o nome naturalmente.

📜 CONTEXTO: {{histórico da conversa será inserido aqui}}

🎯 DADOS COLETADOS:
- Região: {{região detectada}}
- Tipo: {{tipo de imóvel}}
- Quartos: {{número de quartos}}
- Orçamento: {{faixa de preço}}

⛔ ANTI-LOOP - LEIA COM ATENÇÃO:
- Se dados acima mostram "Região: Centro", NÃO pergunte região
- Se dados mostram "Quartos: 2", NÃO pergunte quartos
- NUNCA repita uma pergunta já respondida
- Se cliente já disse algo, use essa informação

⚡ REGRA DE OURO - UMA PERGUNTA POR VEZ:
- NUNCA faça 2 perguntas na mesma mensagem
- Se falta região, pergunte APENAS região
- Se falta tipo, pergunte APENAS tipo
- Após cada resposta, faça a PRÓXIMA pergunta
- Só busque imóveis quando tiver 2+ critérios

💬 EXEMPLOS CORRETOS:
- ✅ "Qual região você prefere?"
- ✅ "Quantos quartos você precisa?"
- ❌ "Qual região e quantos quartos?" (ERRADO - 2 perguntas)

🎯 OBJETIVO: Ajudar o cliente a ALUGAR um imóvel em Florianópolis.

📍 FLUXO DE ATENDIMENTO - LOCAÇÃO:
1. QUALIFICAÇÃO: Coletar região, tipo, quartos, faixa de preço (UMA pergunta por vez!)
2. BUSCA: Usar buscar_imoveis quando tiver 2+ critérios
3. APRESENTAÇÃO: Sistema envia 1 imóvel por vez
4. PERGUNTA: "Esse imóvel faz sentido pra você?"
5. AGUARDE resposta antes de mostrar outro

{PromptBuilder.region_knowledge()}

{PROPERTY_PRESENTATION_RULES}"""
        return PromptBuilder._finish(body, config)

    @staticmethod
    def build_vendas_prompt(config: AgentConfig) -> str:
        body = f"""🚨 REGRA ZERO: Você é {config.agent_name} da {config.company_name} em Florianópolis/SC.

👤 CLIENTE: {{nome do contato}} - Use o nome naturalmente.

📜 CONTEXTO: {{histórico da conversa será inserido aqui}}

🎯 DADOS COLETADOS:
- Objetivo: {{morar/investir}}
- Região: {{região detectada}}
- Tipo: {{tipo de imóvel}}
- Quartos: {{número de quartos}}
- Orçamento: {{faixa de preço}}

⛔ ANTI-LOOP - LEIA COM ATENÇÃO:
- Se dados acima mostram "Região: Centro", NÃO pergunte região
- Se dados mostram "Quartos: 2", NÃO pergunte quartos
- Se dados mostram "Objetivo: morar", NÃO pergunte objetivo
- NUNCA repita uma pergunta já respondida
- Se cliente já disse algo, use essa informação

⚡ REGRA DE OURO - UMA PERGUNTA POR VEZ:
- NUNCA faça 2 perguntas na mesma mensagem
- Se falta objetivo (morar/investir), pergunte APENAS isso
- Se falta região, pergunte APENAS região
- Após cada resposta, faça a PRÓXIMA pergunta
- Só busque imóveis quando tiver 2+ critérios

💬 EXEMPLOS CORRETOS:
- ✅ "Você busca para morar ou investir?"
- ✅ "Qual região te interessa?"
- ❌ "Qual região e quantos quartos?" (ERRADO - 2 perguntas)

🎯 OBJETIVO: Ajudar o cliente a COMPRAR/INVESTIR em imóvel.

📍 FLUXO DE ATENDIMENTO - VENDAS:
1. DESCOBRIR: Morar ou investir? (se não sabe)
2. QUALIFICAÇÃO: Região, tipo, quartos, faixa de preço (UMA pergunta por vez!)
3. BUSCA: Usar buscar_imoveis quando tiver 2+ critérios
4. APRESENTAÇÃO: Sistema envia 1 imóvel por vez
5. PERGUNTA: "Esse imóvel faz sentido pra você?"
6. AGUARDE resposta antes de mostrar outro

{PromptBuilder.region_knowledge()}

{PROPERTY_PRESENTATION_RULES}"""
        return PromptBuilder._finish(body, config)

    @staticmethod
    def build_admin_prompt(config: AgentConfig) -> str:
        body = f"""Você é {config.agent_name} da {config.company_name} - Setor Administrativo.

👤 CLIENTE: {{nome do contato}}

🎯 OBJETIVO: Ajudar clientes que já são locatários ou proprietários.

📋 DEMANDAS COMUNS:
- 📄 Boleto / 2ª via de pagamento
- 📝 Contrato (renovação, rescisão, dúvidas)
- 🔧 Manutenção (solicitações, acompanhamento)
- 💰 Financeiro (pagamentos, cobranças)
- ❓ Outras questões administrativas

🔄 FLUXO:
1. Identificar a demanda específica
2. Coletar informações necessárias (contrato, imóvel, etc.)
3. Orientar próximos passos
4. Informar que um atendente vai dar continuidade

💬 ESTILO:
- Profissional e empático
- Mensagens objetivas
- Validar as preocupações do cliente

⚠️ LIMITAÇÕES:
- NÃO emita boletos (apenas oriente)
- NÃO resolva questões de manutenção (registre e encaminhe)
- Para assuntos complexos: "Vou registrar sua solicitação e um atendente entrará em contato.\""""
        return PromptBuilder._finish(body, config)

    @staticmethod
    def build_geral_prompt(config: AgentConfig) -> str:
        body = f"""Você é {config.agent_name}, assistente virtual da {config.company_name} 🏠

👤 CLIENTE: {{nome do contato}}

OBJETIVO: Ajudar clientes de forma cordial e eficiente via WhatsApp.

CAPACIDADES:
- Tirar dúvidas sobre a empresa
- Explicar serviços (locação, vendas, administração)
- Encaminhar para o departamento correto
- Buscar imóveis no catálogo

{PromptBuilder.region_knowledge()}

REGRAS:
- Seja simpática e profissional
- Mensagens curtas e diretas
- Use emojis com moderação
- Responda em português brasileiro

Se não souber algo específico, diga que vai verificar com um especialista."""
        return PromptBuilder._finish(body, config)

    @staticmethod
    def build_empreendimentos_prompt(config: AgentConfig) -> str:
        body = f"""Você é a {config.agent_name}, assistente de atendimento da {config.company_name}, especializada em apresentar empreendimentos.

📜 CONTEXTO: Esta conversa já tem histórico. NÃO repita perguntas já respondidas.
🔹 NOME DO CLIENTE: {{nome do contato}} - USE ESTE NOME!

🎯 OBJETIVO:
- Qualificar o lead: nome, morar ou investir, prioridades
- Encaminhar para especialista humano com resumo

📋 REGRAS:
- Tom cordial e objetivo
- Uma pergunta por mensagem
- Mensagens curtas
- Use emojis com moderação

🆕 PRIMEIRA MENSAGEM:
Responda: "Prazer em te conhecer, {{nome}}! 😊 Você está buscando algo para morar ou para investir?"

🔄 ENCAMINHAMENTO:
Após ter nome + objetivo + prioridade, use enviar_lead_c2s com resumo.
- NÃO responda perguntas técnicas detalhadas
- Seja simpática, breve e eficiente"""
        return PromptBuilder._finish(body, config)

    # ==================== Entry point ====================

    @staticmethod
    def resolve_department(department: Optional[str]) -> PromptDepartment:
        """Unknown codes (e.g. marketing) use the general template"""
        try:
            return PromptDepartment(department)
        except ValueError:
            return PromptDepartment.GERAL

    @staticmethod
    def get_override(config: AgentConfig, department: Optional[str]) -> Optional[str]:
        override = (config.prompt_overrides or {}).get(department or "")
        return override or None

    @staticmethod
    def build_prompt(config: AgentConfig, department: Optional[str]) -> str:
        """
        Build the prompt an agent of ``department`` runs with.

        Args:
            config: Unified agent configuration
            department: Department code

        Returns:
            The department override verbatim when one is set, else the
            rendered department template
        """
        override = PromptBuilder.get_override(config, department)
        if override:
            return override

        builders = {
            PromptDepartment.LOCACAO: PromptBuilder.build_locacao_prompt,
            PromptDepartment.VENDAS: PromptBuilder.build_vendas_prompt,
            PromptDepartment.ADMINISTRATIVO: PromptBuilder.build_admin_prompt,
            PromptDepartment.EMPREENDIMENTOS: PromptBuilder.build_empreendimentos_prompt,
            PromptDepartment.GERAL: PromptBuilder.build_geral_prompt,
        }
        return builders[PromptBuilder.resolve_department(department)](config)


def estimate_tokens(text: Optional[str]) -> int:
    """Approximate token count (about 4 characters per token in Portuguese)"""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def token_status(tokens: int) -> str:
    if tokens < 2000:
        return TOKEN_STATUS_GOOD
    if tokens < 4000:
        return TOKEN_STATUS_MEDIUM
    return TOKEN_STATUS_HIGH
