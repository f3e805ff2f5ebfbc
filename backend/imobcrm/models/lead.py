"""
Lead intake and contact models
"""
from enum import Enum
from typing import Optional, Any, List, Dict
from pydantic import BaseModel, Field


class TransactionType(str, Enum):
    SELL = "SELL"
    RENT = "RENT"


class ContactType(str, Enum):
    LEAD = "lead"
    PROPRIETARIO = "proprietario"
    INQUILINO = "inquilino"


class QualificationStatus(str, Enum):
    PENDING = "pending"
    QUALIFYING = "qualifying"
    QUALIFIED = "qualified"
    COLD = "cold"


class PortalLead(BaseModel):
    """Lead pushed by a listing portal (camelCase payload)"""
    lead_origin: Optional[str] = Field(default=None, alias="leadOrigin")
    timestamp: Optional[str] = None
    origin_lead_id: Optional[str] = Field(default=None, alias="originLeadId")
    origin_listing_id: Optional[str] = Field(default=None, alias="originListingId")
    client_listing_id: Optional[str] = Field(default=None, alias="clientListingId")
    name: Optional[str] = None
    email: Optional[str] = None
    ddd: Optional[str] = None
    phone: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    message: Optional[str] = None
    temperature: Optional[str] = None
    transaction_type: Optional[str] = Field(default=None, alias="transactionType")

    model_config = {"populate_by_name": True, "extra": "allow"}

    @property
    def detected_interest(self) -> Optional[str]:
        if self.transaction_type == TransactionType.SELL.value:
            return "compra"
        if self.transaction_type == TransactionType.RENT.value:
            return "locacao"
        return None


class LandingPageLead(BaseModel):
    """Lead captured by a development landing page"""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    development_slug: Optional[str] = None
    source: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    message: Optional[str] = None

    model_config = {"extra": "allow"}

    def utm(self) -> Dict[str, Optional[str]]:
        return {
            "source": self.utm_source,
            "medium": self.utm_medium,
            "campaign": self.utm_campaign,
            "content": self.utm_content,
        }


class ContractInfo(BaseModel):
    contract_number: str
    contract_type: Optional[str] = None
    status: str = "ativo"


class ImportedContact(BaseModel):
    """A contact parsed from an address-book CSV line"""
    name: str
    phone: str
    email: Optional[str] = None
    contact_type: ContactType = ContactType.PROPRIETARIO
    notes: Optional[str] = None
    contracts: List[ContractInfo] = Field(default_factory=list)


class ImportResult(BaseModel):
    success: bool = True
    total_processed: int = Field(default=0, serialization_alias="totalProcessed")
    inserted: int = 0
    updated: int = 0
    parse_errors: List[str] = Field(default_factory=list, serialization_alias="parseErrors")
    insert_errors: List[str] = Field(default_factory=list, serialization_alias="insertErrors")
    summary: str = ""


class LeadToReengage(BaseModel):
    """Row of lead_qualification selected for a reengagement attempt"""
    id: str
    phone_number: str
    conversation_id: Optional[str] = None
    portal_lead_id: Optional[str] = None
    reengagement_attempts: int = 0
    detected_interest: Optional[str] = None
    detected_property_type: Optional[str] = None
    detected_neighborhood: Optional[str] = None

    model_config = {"extra": "allow"}


class ReengagementReport(BaseModel):
    success: bool = True
    processed: int = 0
    sent: Optional[int] = 0
    failed: Optional[int] = 0
    message: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class C2SLead(BaseModel):
    """Qualified lead forwarded to the Contact2Sale CRM"""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    type_negotiation: Optional[str] = None
    description: Optional[str] = None
    conversation_history: Optional[str] = None
    contact_id: Optional[str] = None
    conversation_id: Optional[str] = None
    property_type: Optional[str] = None
    neighborhood: Optional[str] = None
    price_range: Optional[str] = None
    bedrooms: Optional[int] = None
    development_id: Optional[str] = None
    development_name: Optional[str] = None
    interesse: Optional[str] = None
    motivacao: Optional[str] = None

    model_config = {"extra": "allow"}
