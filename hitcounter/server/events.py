from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .privacy import anonymize_ip, anonymize_referrer, sanitize_input
from .useragent import classify_user_agent


def utc_iso(dt: Optional[datetime] = None) -> str:
    # Millisecond precision with a "Z" suffix, so string order is time order.
    dt = (dt or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class RawEvent:
    """Untrusted fields exactly as received."""

    project: Any
    page: Any = None
    user_agent: Any = None
    client_ip: Optional[str] = None
    referrer: Any = None
    date: Any = None

    @classmethod
    def from_request(
        cls,
        body: Mapping[str, Any],
        *,
        client_ip: Optional[str],
        header_user_agent: Optional[str],
        header_referrer: Optional[str],
    ) -> "RawEvent":
        # Body values win; headers fill in what the body omits.
        user_agent = body.get("userAgent")
        if user_agent is None:
            user_agent = header_user_agent
        referrer = body.get("referrer")
        if referrer is None:
            referrer = header_referrer
        return cls(
            project=body.get("project"),
            page=body.get("page"),
            user_agent=user_agent,
            client_ip=client_ip,
            referrer=referrer,
            date=body.get("date"),
        )


@dataclass(frozen=True)
class NormalizedEvent:
    project: Optional[str]
    page: Optional[str]
    user_agent: Optional[str]
    anonymized_ip: Optional[str]
    referrer: Optional[str]
    timestamp: str

    def to_document(self) -> Dict[str, Any]:
        d = asdict(self)
        return {
            "project": d["project"],
            "page": d["page"],
            "userAgent": d["user_agent"],
            "anonymizedIP": d["anonymized_ip"],
            "referrer": d["referrer"],
            "timestamp": d["timestamp"],
        }


def normalize_event(raw: RawEvent, *, ipv4_masked_octets: int = 2, now: Optional[datetime] = None) -> NormalizedEvent:
    """
    Apply every privacy rule to a RawEvent.

    The client-supplied date is dropped in favour of the server clock, and
    the raw client IP only survives as its anonymized prefix.
    """
    return NormalizedEvent(
        project=sanitize_input(raw.project),
        page=sanitize_input(raw.page),
        user_agent=classify_user_agent(raw.user_agent),
        anonymized_ip=anonymize_ip(raw.client_ip, masked_octets=ipv4_masked_octets),
        referrer=anonymize_referrer(raw.referrer),
        timestamp=utc_iso(now),
    )
