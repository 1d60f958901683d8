from __future__ import annotations

import os
import re

_SEPARATORS = re.compile(r"[\s()\-.]")
_LOCAL_NUMBER = re.compile(r"^0\d{8,}$")
_E164_LIKE = re.compile(r"^\+\d{7,15}$")


def default_country_code() -> str:
    code = os.getenv("SHOP_PHONE_DEFAULT_COUNTRY", "+41").strip() or "+41"
    return code if code.startswith("+") else f"+{code}"


def normalize_e164(raw: object, default_country: str | None = None) -> str | None:
    """Best-effort conversion of a locally formatted number into +<country><number>.

    Returns None when the input cannot be read as an international number. Local numbers
    such as 079 123 45 67 are prefixed with the default country code (Switzerland unless
    SHOP_PHONE_DEFAULT_COUNTRY says otherwise).
    """

    if not isinstance(raw, str):
        return None

    s = _SEPARATORS.sub("", raw.strip())
    if not s:
        return None

    if s.startswith("00"):
        s = "+" + s[2:]
    elif not s.startswith("+") and _LOCAL_NUMBER.match(s):
        s = (default_country or default_country_code()) + s.lstrip("0")

    if not _E164_LIKE.match(s):
        return None
    return s
