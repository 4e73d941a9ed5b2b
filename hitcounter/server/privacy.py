from __future__ import annotations

import ipaddress
import re
from typing import Any, Optional
from urllib.parse import urlsplit


MAX_TEXT_LENGTH = 100
MAX_USER_AGENT_LENGTH = 500
MAX_URL_LENGTH = 500

IP_TOKEN = "[IP_REDACTED]"
EMAIL_TOKEN = "[EMAIL_REDACTED]"

IPV4_RE = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")
IPV6_GROUP_RE = re.compile(r"^[0-9A-Fa-f]{0,4}$")

# Embedded patterns inside free text.
EMBEDDED_IPV4_RE = re.compile(r"(?<![\d.])\d{1,3}(?:\.\d{1,3}){3}(?![\d.])")
EMBEDDED_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")

STRIP_CHARS_RE = re.compile(r"[<>\"'&]")

PRIVATE_EXACT = ("127.0.0.1", "::1")
PRIVATE_PREFIXES = ("192.168.", "10.", "172.")


def anonymize_ip(raw: Optional[str], *, masked_octets: int = 2) -> Optional[str]:
    """
    Truncate an IP address so the host cannot be recovered.

    - IPv4 "a.b.c.d" -> "a.b.x.x" (or "a.b.c.x" with masked_octets=1)
    - IPv6 keeps up to 3 leading groups, then five "x" groups
    - Anything else -> None
    """
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    if not value:
        return None

    m = IPV4_RE.match(value)
    if m:
        octets = list(m.groups())
        if any(int(o) > 255 for o in octets):
            return None
        keep = 4 - max(1, min(2, masked_octets))
        return ".".join(octets[:keep] + ["x"] * (4 - keep))

    if ":" in value and "." not in value:
        groups = value.split(":")
        if len(groups) < 3 or not all(IPV6_GROUP_RE.match(g) for g in groups):
            return None
        kept = []
        for g in groups[:3]:
            if not g:
                break
            kept.append(g.lower())
        if len(kept) < 2:
            return None
        return ":".join(kept + ["x"] * 5)

    return None


def is_private(ip: Optional[str]) -> bool:
    # Coarse prefix match; any 172.x address counts as private.
    if not ip:
        return False
    ip = ip.strip()
    if ip in PRIVATE_EXACT:
        return True
    return ip.startswith(PRIVATE_PREFIXES)


def redact_sensitive(text: str) -> str:
    text = EMBEDDED_IPV4_RE.sub(IP_TOKEN, text)
    return EMBEDDED_EMAIL_RE.sub(EMAIL_TOKEN, text)


def _redact_and_truncate(text: str, max_length: int) -> str:
    # Truncation can expose a new match at the tail, so repeat until stable.
    while True:
        cleaned = redact_sensitive(text)[:max_length]
        if cleaned == text:
            return cleaned
        text = cleaned


def sanitize_input(raw: Any, *, max_length: int = MAX_TEXT_LENGTH) -> Optional[str]:
    """
    Make a short free-text field safe to store.

    Strips <>"'&, redacts embedded IPv4 literals and emails, and truncates
    to max_length. Stripping runs first so an address split by one of the
    stripped characters is still redacted.
    """
    if not isinstance(raw, str) or not raw:
        return None
    text = STRIP_CHARS_RE.sub("", raw)
    text = _redact_and_truncate(text, max_length)
    return text or None


def bound_text(raw: Optional[str], *, max_length: int) -> Optional[str]:
    """Redact and truncate without stripping characters (for URLs)."""
    if not raw:
        return None
    return _redact_and_truncate(raw, max_length) or None


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def anonymize_referrer(raw: Optional[str]) -> Optional[str]:
    """
    Reduce a referrer URL to scheme://host/path.

    Query string, fragment and user-info are dropped. Returns None when the
    value is not an absolute URL or when its host is a bare IP address.
    """
    if not isinstance(raw, str):
        return None
    url = raw.strip()
    if not url:
        return None
    try:
        u = urlsplit(url)
        host = u.hostname
        port = u.port
    except ValueError:
        return None
    if not u.scheme or not host:
        return None
    if _is_ip_literal(host):
        return None

    netloc = f"{host}:{port}" if port else host
    return bound_text(f"{u.scheme}://{netloc}{u.path or ''}", max_length=MAX_URL_LENGTH)
