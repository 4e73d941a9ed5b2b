"""
Coarse user-agent classification.

The raw User-Agent string is high-entropy and never stored. It is reduced to
an "<OS>, <Browser>" label by two ordered rule tables. Rules are evaluated
top to bottom and the first match wins, so rules whose signature is a
superset of another's must come first:

- Android UAs carry "Linux", so Android precedes Linux.
- iOS UAs carry "like Mac OS X", so iOS precedes macOS.
- Edge and Opera UAs carry "Chrome/" and "Safari/", so they precede Chrome,
  and Chrome precedes Safari.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Sequence

from .privacy import MAX_USER_AGENT_LENGTH


UNKNOWN_OS = "Unknown OS"
UNKNOWN_BROWSER = "Unknown Browser"


@dataclass(frozen=True)
class Rule:
    name: str
    pattern: re.Pattern
    render: Callable[[re.Match], str]

    def apply(self, ua: str) -> Optional[str]:
        m = self.pattern.search(ua)
        if m is None:
            return None
        return self.render(m)


def _fixed(label: str) -> Callable[[re.Match], str]:
    return lambda _m: label


def _versioned(family: str) -> Callable[[re.Match], str]:
    def render(m: re.Match) -> str:
        parts = [p for p in (m.group(1) or "").replace("_", ".").split(".") if p]
        # Reduced UAs report "120.0.0.0"; trailing zero components carry nothing.
        while len(parts) > 1 and parts[-1] == "0":
            parts.pop()
        if not parts:
            return family
        return f"{family} {'.'.join(parts)}"

    return render


OS_RULES: List[Rule] = [
    Rule("windows-10", re.compile(r"Windows NT 10\.0"), _fixed("Windows 10/11")),
    Rule("windows-8.1", re.compile(r"Windows NT 6\.3"), _fixed("Windows 8.1")),
    Rule("windows-8", re.compile(r"Windows NT 6\.2"), _fixed("Windows 8")),
    Rule("windows-7", re.compile(r"Windows NT 6\.1"), _fixed("Windows 7")),
    Rule("windows", re.compile(r"Windows"), _fixed("Windows")),
    Rule("android", re.compile(r"Android\s*([\d.]*)"), _versioned("Android")),
    Rule("ios", re.compile(r"(?:iPhone|iPad|iPod).*?OS (\d+(?:_\d+)*)"), _versioned("iOS")),
    Rule("macos", re.compile(r"Mac OS X\s*(\d+(?:[_.]\d+)*)?"), _versioned("macOS")),
    Rule("chromeos", re.compile(r"CrOS"), _fixed("ChromeOS")),
    Rule("linux", re.compile(r"Linux"), _fixed("Linux")),
]

BROWSER_RULES: List[Rule] = [
    Rule("edge", re.compile(r"Edg(?:e|A|iOS)?/([\d.]+)"), _versioned("Edge")),
    Rule("opera", re.compile(r"OPR/([\d.]+)"), _versioned("Opera")),
    Rule("samsung", re.compile(r"SamsungBrowser/([\d.]+)"), _versioned("Samsung Internet")),
    Rule("firefox", re.compile(r"(?:Firefox|FxiOS)/([\d.]+)"), _versioned("Firefox")),
    Rule("chrome", re.compile(r"(?:Chrome|CriOS)/([\d.]+)"), _versioned("Chrome")),
    Rule("safari", re.compile(r"Version/([\d.]+).*Safari/"), _versioned("Safari")),
    Rule("safari-unversioned", re.compile(r"Safari/"), _fixed("Safari")),
]


class UserAgentInfo(NamedTuple):
    os: str
    browser: str

    @property
    def label(self) -> str:
        return f"{self.os}, {self.browser}"


def first_match(rules: Sequence[Rule], ua: str, default: str) -> str:
    for rule in rules:
        label = rule.apply(ua)
        if label is not None:
            return label
    return default


def classify(ua: str) -> UserAgentInfo:
    return UserAgentInfo(
        os=first_match(OS_RULES, ua, UNKNOWN_OS),
        browser=first_match(BROWSER_RULES, ua, UNKNOWN_BROWSER),
    )


def classify_user_agent(raw: Optional[str]) -> Optional[str]:
    """
    Return the stored "<OS>, <Browser>" label, or None for a missing UA.

    The label holds only fixed family names and digit-and-dot versions, so
    it is truncated but not passed through IP redaction: a version such as
    "91.0.864.59" has the shape of an address.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    return classify(raw).label[:MAX_USER_AGENT_LENGTH]
