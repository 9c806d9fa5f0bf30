from __future__ import annotations

TRUNK_PREFIX = "0"
DEFAULT_COUNTRY_CODE = "+94"


def normalize_phone(phone: str | None, country_code: str = DEFAULT_COUNTRY_CODE) -> str | None:
    """
    Convert a stored local number into its international dialable form.

    ``0771234567`` becomes ``+94771234567``; anything not starting with the
    trunk prefix is assumed to be international already and returned as is.
    """
    if not phone:
        return None
    phone = phone.strip()
    if not phone:
        return None
    if phone.startswith(TRUNK_PREFIX):
        return f"{country_code}{phone[len(TRUNK_PREFIX):]}"
    return phone


def mask_phone(phone: str | None) -> str | None:
    if not phone:
        return None
    if len(phone) < 6:
        return "****"
    return f"{phone[:4]}****{phone[-2:]}"


def mask_email(address: str | None) -> str | None:
    if not address:
        return None
    local, sep, domain = address.partition("@")
    if not sep:
        return "****"
    return f"{local[:1]}***@{domain}"
