"""
AI agent configuration models
"""
from enum import Enum
from typing import Optional, Any, Dict, List
from pydantic import BaseModel, Field


class PromptDepartment(str, Enum):
    """Departments that have a dedicated prompt template"""
    LOCACAO = "locacao"
    VENDAS = "vendas"
    ADMINISTRATIVO = "administrativo"
    EMPREENDIMENTOS = "empreendimentos"
    GERAL = "geral"


class AgentTone(str, Enum):
    FORMAL = "formal"
    CASUAL = "casual"
    FRIENDLY = "friendly"
    PROFESSIONAL = "professional"


class AgentConfig(BaseModel):
    """Unified AI agent configuration (system_settings / ai_agent_config)"""
    agent_name: str = "Helena"
    company_name: str = "Smolka Imóveis"
    tone: AgentTone = AgentTone.FRIENDLY
    business_rules: List[str] = Field(default_factory=list)
    custom_instructions: Optional[str] = None
    prompt_overrides: Dict[str, Optional[str]] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


class PromptPreviewRequest(BaseModel):
    config: AgentConfig
    department: str = PromptDepartment.GERAL.value


class PromptPreview(BaseModel):
    department: str
    prompt: str
    tokens: int
    token_status: str
    is_override: bool = False
