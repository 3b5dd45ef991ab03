"""Normalization heuristics for names, titles and websites.

Everything here is deterministic string handling:
- person-name cleanup for search queries (honorifics, credentials, initials,
  reversed "Last, First" ordering)
- structured name parsing used at ingestion time
- leadership-title classification
- website-to-domain extraction
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlsplit

HONORIFICS = frozenset({"mr", "mrs", "ms", "dr", "prof"})

NAME_SUFFIXES = frozenset(
    {
        "jr",
        "sr",
        "ii",
        "iii",
        "iv",
        "md",
        "phd",
        "dds",
        "dmd",
        "esq",
        "mba",
        "cpa",
        "jd",
        "dvm",
        "do",
    }
)

_INITIAL_RE = re.compile(r"^[a-z]\.?$", re.IGNORECASE)


def _clean_token(token: str) -> str:
    return re.sub(r"[.,]", "", token).strip()


def _is_initial(token: str) -> bool:
    return bool(_INITIAL_RE.match(token))


@dataclass
class NormalizedName:
    """A "First Last" search name plus diagnostic notes."""

    normalized: str
    first: Optional[str] = None
    last: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    @property
    def too_short(self) -> bool:
        return "name_too_short" in self.notes or "empty_name" in self.notes


def normalize_name_for_search(raw: Optional[str]) -> NormalizedName:
    """Reduce a raw employee name to "First Last" for matching and queries."""

    notes: List[str] = []
    if not raw or not raw.strip():
        return NormalizedName(normalized="", notes=["empty_name"])

    text = re.sub(r"\s+", " ", raw).strip()
    reversed_order = False

    if "," in text:
        last_part, rest = (part.strip() for part in text.split(",", 1))
        rest_tokens = [_clean_token(t) for t in rest.replace(",", " ").split()]
        rest_tokens = [t for t in rest_tokens if t]
        is_suffix_only = all(t.lower() in NAME_SUFFIXES for t in rest_tokens)
        if last_part and rest_tokens and not is_suffix_only:
            text = f"{' '.join(rest_tokens)} {last_part}"
            reversed_order = True
            notes.append("maybe_reversed")
        else:
            text = text.replace(",", " ")

    tokens = [_clean_token(t) for t in text.split(" ")]
    tokens = [t for t in tokens if t]

    before = len(tokens)
    tokens = [t for t in tokens if t.lower() not in HONORIFICS]
    if len(tokens) != before:
        notes.append("dropped_honorific")

    before = len(tokens)
    tokens = [t for t in tokens if t.lower() not in NAME_SUFFIXES]
    if len(tokens) != before:
        notes.append("dropped_suffix")

    before = len(tokens)
    tokens = [t for idx, t in enumerate(tokens) if idx == 0 or idx == len(tokens) - 1 or not _is_initial(t)]
    if len(tokens) != before:
        notes.append("dropped_initial")

    if len(tokens) < 2:
        notes.append("name_too_short")
        return NormalizedName(normalized=" ".join(tokens), first=tokens[0] if tokens else None, notes=notes)

    if not reversed_order and len(tokens) <= 3:
        first_tok, second_tok = tokens[0], tokens[1]
        has_letters = any(ch.isalpha() for ch in raw)
        all_caps = has_letters and raw == raw.upper()
        caps_then_mixed = len(first_tok) > 1 and first_tok.isupper() and not second_tok.isupper()
        if all_caps or caps_then_mixed:
            notes.append("maybe_reversed")
            tokens = [second_tok, first_tok]

    first, last = tokens[0], tokens[-1]
    normalized = f"{first} {last}"
    if normalized != raw.strip():
        notes.append("normalized_changed")
    return NormalizedName(normalized=normalized, first=first, last=last, notes=notes)


@dataclass
class ParsedName:
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    suffix: Optional[str] = None
    issues: List[str] = field(default_factory=list)


_LEADING_HONORIFIC_RE = re.compile(r"^(mr|mrs|ms|dr)\.\s+", re.IGNORECASE)


def parse_person_name(raw: Optional[str]) -> Optional[ParsedName]:
    """Split a raw name into parts, recording issues for the ingestion report."""
    if not raw:
        return None
    text = re.sub(r"\s+", " ", raw.strip())
    if not text:
        return None

    issues: List[str] = []
    if "," in text:
        last, rest = (part.strip() for part in text.split(",", 1))
        if last and rest:
            text = f"{rest} {last}".strip()
            issues.append("name_was_last_comma_first")

    text = _LEADING_HONORIFIC_RE.sub("", text)
    parts = [p for p in text.split(" ") if p]

    suffix = None
    if parts and _clean_token(parts[-1]).lower() in NAME_SUFFIXES:
        suffix = parts.pop()
        issues.append("name_has_suffix")

    if not parts:
        issues.append("name_single_token")
        return ParsedName(suffix=suffix, issues=issues)
    if len(parts) == 1:
        issues.append("name_single_token")
        return ParsedName(first_name=parts[0], suffix=suffix, issues=issues)

    middle = " ".join(parts[1:-1]) or None
    return ParsedName(first_name=parts[0], middle_name=middle, last_name=parts[-1], suffix=suffix, issues=issues)


# --- Titles ---

FORMER_RE = re.compile(r"\b(?:former|retired|past)\b|\bex-", re.IGNORECASE)
ACTING_RE = re.compile(r"\b(?:acting|interim)\b", re.IGNORECASE)
_CEO_RE = re.compile(r"\bceo\b|chief executive", re.IGNORECASE)
_EXEC_DIR_RE = re.compile(r"executive director", re.IGNORECASE)
_PRESIDENT_RE = re.compile(r"\bpresident\b", re.IGNORECASE)

CEO = "CEO"
EXEC_DIR = "EXEC_DIR"
PRESIDENT_CEO = "PRESIDENT_CEO"
OTHER = "OTHER"


@dataclass(frozen=True)
class NormalizedTitle:
    primary_role: Optional[str]
    is_former: bool = False
    is_acting_or_interim: bool = False
    cleaned: Optional[str] = None


def normalize_title(raw: Optional[str]) -> NormalizedTitle:
    """Classify a raw title; PRESIDENT_CEO wins when both terms are present."""
    if not raw or not raw.strip():
        return NormalizedTitle(primary_role=None)

    cleaned = re.sub(r"\s+", " ", raw).strip()
    has_ceo = bool(_CEO_RE.search(cleaned))
    if _PRESIDENT_RE.search(cleaned) and has_ceo:
        role = PRESIDENT_CEO
    elif has_ceo:
        role = CEO
    elif _EXEC_DIR_RE.search(cleaned):
        role = EXEC_DIR
    else:
        role = OTHER

    return NormalizedTitle(
        primary_role=role,
        is_former=bool(FORMER_RE.search(cleaned)),
        is_acting_or_interim=bool(ACTING_RE.search(cleaned)),
        cleaned=cleaned,
    )


# --- Websites ---

_HOST_RE = re.compile(r"^[a-z0-9.-]+$")
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_website_to_domain(value: Optional[str]) -> Optional[str]:
    """Return the bare lowercase host of a website string, or ``None``.

    Never raises: anything that does not parse to a dotted ASCII host is ``None``.
    """
    if not value or not isinstance(value, str):
        return None

    cleaned = value.strip()
    cleaned = re.sub(r"^[\"']|[\"']$", "", cleaned)
    cleaned = re.sub(r"[),.;]+$", "", cleaned).strip()
    if not cleaned:
        return None

    with_scheme = cleaned if _SCHEME_RE.match(cleaned) else f"https://{cleaned}"
    try:
        host = urlsplit(with_scheme).hostname
    except ValueError:
        return None
    if not host:
        return None

    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    if "." not in host or not _HOST_RE.match(host):
        return None
    return host.strip(".") or None
