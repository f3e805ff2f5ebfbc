"""
Phone helpers - Brazilian numbers in the formats each channel expects
"""
import re
from typing import Optional


def digits_only(value: Optional[str]) -> str:
    """Strip everything that is not a digit"""
    return re.sub(r"\D", "", value or "")


def normalize_phone(
    ddd: Optional[str] = None,
    phone: Optional[str] = None,
    phone_number: Optional[str] = None
) -> Optional[str]:
    """
    Normalize a portal phone to the WhatsApp id format (55 + DDD + number).

    Handles:
    - phone_number "(48) 99999-8888" -> 5548999998888
    - ddd "48" + phone "999998888" -> 5548999998888
    - already prefixed 12-13 digit numbers are kept

    Returns:
        Digits, or None when fewer than 10 digits are left
    """
    raw = phone_number or ""
    if not raw and ddd and phone:
        raw = f"{ddd}{phone}"
    if not raw:
        return None

    digits = digits_only(raw)

    if digits.startswith("55") and len(digits) >= 12:
        return digits

    if 10 <= len(digits) <= 11:
        return f"55{digits}"

    return digits if len(digits) >= 10 else None


def format_brazilian_phone(phone: str) -> str:
    """
    Format a number for display as ``+55 (AA) 9 XXXX-XXXX``.

    10-digit landline-style numbers get the mobile 9 inserted. Anything
    that does not look Brazilian is returned unchanged.
    """
    if not phone:
        return ""

    digits = digits_only(phone)

    if digits.startswith("55") and len(digits) == 13:
        return f"+55 ({digits[2:4]}) {digits[4]} {digits[5:9]}-{digits[9:13]}"

    if len(digits) == 11:
        return f"+55 ({digits[:2]}) {digits[2]} {digits[3:7]}-{digits[7:11]}"

    if len(digits) == 10:
        return f"+55 ({digits[:2]}) 9 {digits[2:6]}-{digits[6:10]}"

    return phone
