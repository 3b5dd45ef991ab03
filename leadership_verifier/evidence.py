"""Pattern matching over search-result text."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from .normalize import FORMER_RE

LEADER_RE = re.compile(
    r"chief executive|\bceo\b|executive director|president\s*&\s*ceo|president and ceo",
    re.IGNORECASE,
)

TITLE_RE = re.compile(
    r"(President\s*(?:and|&)\s*CEO|Chief Executive Officer|Executive Director|CEO)",
    re.IGNORECASE,
)

OTHER_LEADER_RE = re.compile(
    r"([A-Z][a-z]+\s+[A-Z][a-z]+)\s*,\s*(?:CEO|Chief Executive Officer|Executive Director)"
)


def simplify(text: Optional[str]) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    text = (text or "").lower()
    text = re.sub(r"[^a-z0-9\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def name_matches(text: Optional[str], first_name: Optional[str], last_name: Optional[str]) -> bool:
    """True when both the first and the last name appear in ``text``."""
    first = simplify(first_name)
    last = simplify(last_name)
    if not first or not last:
        return False
    haystack = simplify(text)
    return first in haystack and last in haystack


def has_leader_keyword(text: Optional[str]) -> bool:
    return bool(text and LEADER_RE.search(text))


def has_former_qualifier(text: Optional[str]) -> bool:
    return bool(text and FORMER_RE.search(text))


def extract_title(snippet: Optional[str]) -> Optional[str]:
    if not snippet:
        return None
    match = TITLE_RE.search(snippet)
    return match.group(1) if match else None


def extract_other_leader(snippet: Optional[str]) -> Optional[str]:
    """Return a "First Last" named as CEO/Executive Director in ``snippet``."""
    if not snippet:
        return None
    match = OTHER_LEADER_RE.search(snippet)
    return match.group(1) if match else None


def parse_evidence_date(value: Optional[str]) -> Optional[datetime]:
    """Best-effort ISO-8601 parse of a metadata date; naive values are taken as UTC."""
    if not value:
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.fromisoformat(text[:10])
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
