"""E.164 normalization for WhatsApp numbers stored in free-form."""
import re

_NON_DIGITS = re.compile(r"\D")
NATIONAL_DIGITS = 10


def normalize_phone(raw: str | None, default_country_code: str = "52") -> str | None:
    """
    Return +<digits> or None when the number cannot be used.

    - "+" followed by 8-15 digits is taken as already international.
    - 10 digits: national number, prefixed with the default country code.
    - Starts with the country code and has exactly code + 10 digits: prefixed with "+".
    - More than 10 digits otherwise: the last 10 digits under the default country code.
    - Fewer than 10 digits: None.
    """
    if not raw:
        return None
    text = raw.strip()
    digits = _NON_DIGITS.sub("", text)
    if text.startswith("+") and 8 <= len(digits) <= 15:
        return f"+{digits}"
    if len(digits) < NATIONAL_DIGITS:
        return None
    if len(digits) == NATIONAL_DIGITS:
        return f"+{default_country_code}{digits}"
    if digits.startswith(default_country_code) and len(digits) == len(default_country_code) + NATIONAL_DIGITS:
        return f"+{digits}"
    return f"+{default_country_code}{digits[-NATIONAL_DIGITS:]}"
