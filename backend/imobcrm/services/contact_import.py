"""
Contact import - Outlook CSV exports into the contacts table.

Column positions follow the Outlook "Comma Separated Values" export:
first name, last name, display name, email, home / business / mobile phone
and notes. Contract references written in the contact name
("Maria inq 123", "João pp 45") become contact_contracts rows.
"""
import csv
import io
import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional, List

from ..models import ImportedContact, ImportResult, ContractInfo, ContactType
from .database import db
from .phone import format_brazilian_phone

logger = logging.getLogger(__name__)

CONTRACT_PATTERN = re.compile(r"(inq|pp|ct|cont)\s*(\d+)", re.IGNORECASE)

CONTRACT_TYPES = {
    "inq": "locacao",
    "pp": "propriedade",
}

# Outlook export column indexes
COL_FIRST_NAME = 0
COL_LAST_NAME = 1
COL_DISPLAY_NAME = 2
COL_EMAIL = 4
COL_HOME_PHONE = 7
COL_BUSINESS_PHONE = 8
COL_MOBILE_PHONE = 12
COL_NOTES = 27

EMPTY_CSV_ERROR = "Nenhum CSV fornecido. Faça upload de um arquivo CSV válido."


def _column(row: List[str], index: int) -> str:
    return row[index].strip() if index < len(row) else ""


def clean_contact_name(name: str) -> str:
    """Drop contract references and emoji, collapse whitespace"""
    without_contracts = CONTRACT_PATTERN.sub("", name)
    without_symbols = "".join(ch for ch in without_contracts if unicodedata.category(ch) != "So")
    return re.sub(r"\s+", " ", without_symbols).strip()


def extract_contracts(name: str) -> List[ContractInfo]:
    contracts = []
    for prefix, number in CONTRACT_PATTERN.findall(name):
        contracts.append(ContractInfo(
            contract_number=number,
            contract_type=CONTRACT_TYPES.get(prefix.lower(), "contrato"),
        ))
    return contracts


def parse_contact_row(row: List[str]) -> Optional[ImportedContact]:
    """
    Build a contact from one CSV row.

    Returns:
        None when the row has no usable name or phone
    """
    name = _column(row, COL_DISPLAY_NAME) or (
        f"{_column(row, COL_FIRST_NAME)} {_column(row, COL_LAST_NAME)}".strip()
    )
    if not name:
        return None

    phone = (
        _column(row, COL_MOBILE_PHONE)
        or _column(row, COL_BUSINESS_PHONE)
        or _column(row, COL_HOME_PHONE)
    )
    if not phone:
        return None
    phone = format_brazilian_phone(phone)

    contact_type = ContactType.INQUILINO if "inq" in name.lower() else ContactType.PROPRIETARIO

    return ImportedContact(
        name=clean_contact_name(name),
        phone=phone,
        email=_column(row, COL_EMAIL) or None,
        contact_type=contact_type,
        notes=_column(row, COL_NOTES) or None,
        contracts=extract_contracts(name),
    )


def parse_contacts_csv(csv_text: str) -> tuple[List[ImportedContact], List[str]]:
    """
    Parse a whole export (header row skipped, blank rows ignored).

    Returns:
        (contacts, parse_errors)
    """
    contacts: List[ImportedContact] = []
    errors: List[str] = []

    reader = csv.reader(io.StringIO(csv_text), skipinitialspace=True)
    try:
        next(reader, None)
    except csv.Error as e:
        errors.append(f"Line 1: {e}")

    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            errors.append(f"Line {reader.line_num}: {e}")
            continue

        if not any(field.strip() for field in row):
            continue
        contact = parse_contact_row(row)
        if contact:
            contacts.append(contact)

    return contacts, errors


class ContactImportService:
    """Upserts parsed contacts by phone"""

    async def import_csv(self, csv_text: str) -> ImportResult:
        contacts, parse_errors = parse_contacts_csv(csv_text)
        logger.info(f"[ContactImport] Parsed {len(contacts)} valid contacts")

        result = ImportResult(total_processed=len(contacts), parse_errors=parse_errors)

        for contact in contacts:
            try:
                existing = await db.get_contact_by_phone(contact.phone)
                if existing:
                    await db.update_contact(existing["id"], {
                        "name": contact.name,
                        "email": contact.email,
                        "contact_type": contact.contact_type.value,
                        "notes": contact.notes,
                        "updated_at": datetime.now(timezone.utc).isoformat(),
                    })
                    await self._save_contracts(existing["id"], contact.contracts, upsert=True)
                    result.updated += 1
                else:
                    created = await db.create_contact({
                        "name": contact.name,
                        "phone": contact.phone,
                        "email": contact.email,
                        "contact_type": contact.contact_type.value,
                        "notes": contact.notes,
                        "status": "ativo",
                    })
                    await self._save_contracts(created["id"], contact.contracts, upsert=False)
                    result.inserted += 1
            except Exception as e:
                logger.error(f"[ContactImport] Error processing contact {contact.name}: {e}")
                result.insert_errors.append(f"{contact.name} ({contact.phone}): {e}")

        result.summary = (
            f"Imported {result.inserted} new contacts and updated {result.updated} existing contacts."
        )
        logger.info(f"[ContactImport] {result.summary}")
        return result

    async def _save_contracts(self, contact_id: str, contracts: List[ContractInfo], upsert: bool) -> None:
        for contract in contracts:
            row = {"contact_id": contact_id, **contract.model_dump()}
            try:
                if upsert:
                    await db.upsert_contract(row)
                else:
                    await db.insert_contract(row)
            except Exception as e:
                logger.error(f"[ContactImport] Contract insert error: {e}")


contact_import = ContactImportService()
