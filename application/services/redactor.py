# application/services/redactor.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from domain.har import Cookie, NameValuePair

SENSITIVE_KEYS = {
    "password",
    "passwd",
    "pass",
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
}

MASK = "********"


def mask_value(key: str, value: Any) -> Any:
    if key.lower() in SENSITIVE_KEYS and value is not None:
        return MASK
    return value


def mask_pairs(pairs: Iterable[NameValuePair]) -> List[Dict[str, Any]]:
    return [{"name": p.name, "value": mask_value(p.name, p.value)} for p in pairs]


def cookie_names(cookies: Iterable[Cookie]) -> List[str]:
    # values never leave the archive through logs
    return [c.name for c in cookies]
