"""Legal citation extraction and merging."""

import json
import re
from typing import Any, Dict, Iterable, List, Tuple

STATUTE_PATTERNS = [
    # Tex. Bus. & Com. Code § 17.46 / Texas Business and Commerce Code Section 17.50
    re.compile(
        r"\bTex(?:as|\.)\s+[A-Z][A-Za-z&.\s]*?Code(?:\s+Ann\.)?\s*(?:§+|Sections?|Sec\.)\s*\d+(?:\.\d+)*(?:\([a-z0-9]+\))*",
    ),
    re.compile(r"\bDeceptive\s+Trade\s+Practices(?:-Consumer\s+Protection)?\s+Act\b", re.IGNORECASE),
    re.compile(r"\bDTPA\b"),
    re.compile(r"\bMagnuson-?Moss\s+Warranty\s+Act\b", re.IGNORECASE),
    re.compile(r"\bTexas\s+Lemon\s+Law\b", re.IGNORECASE),
]

# Bare section references, kept only when not part of a longer statute match
SECTION_PATTERN = re.compile(r"§+\s*\d+\.\d+(?:\([a-z0-9]+\))*")

REPORTER_PATTERN = re.compile(
    r"\b\d{1,4}\s+(?:S\.W\.(?:2d|3d)?|U\.S\.|F\.(?:2d|3d|4th)?|F\.\s?Supp\.(?:\s?2d|\s?3d)?|S\.\s?Ct\.)"
    r"\s+\d{1,5}(?:\s*\([^)]{2,40}\))?"
)

CASE_NAME_PATTERN = re.compile(
    r"\b([A-Z][A-Za-z'&.\-]*(?:,?\s+(?:[A-Z][A-Za-z'&.\-]*|of|and|&)){0,5})"
    r"\s+v\.\s+"
    r"([A-Z][A-Za-z'&.\-]*(?:,?\s+(?:[A-Z][A-Za-z'&.\-]*|of|and|&)){0,5})"
)

_LEADING_NOISE = {"In", "See", "Cf.", "The", "Under", "And", "But"}
_TRAILING_CONNECTORS = {"of", "and", "&"}


def _overlaps(span: Tuple[int, int], taken: List[Tuple[int, int]]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in taken)


def _clean_case_name(name: str) -> str:
    words = name.strip().rstrip(",.").split()
    while words and words[0] in _LEADING_NOISE:
        words = words[1:]
    while words and words[-1] in _TRAILING_CONNECTORS:
        words = words[:-1]
    return " ".join(words).rstrip(",")


def extract_citations(text: str) -> List[Dict[str, str]]:
    """Find statute, reporter and case-name citations in free text.

    Matches are de-duplicated case-insensitively and keep first-seen order.

    Args:
        text: Analysis text produced by an earlier step

    Returns:
        List of ``{"type": ..., "citation": ...}`` dicts
    """
    if not text:
        return []

    found: List[Tuple[int, str, str]] = []
    statute_spans: List[Tuple[int, int]] = []

    for pattern in STATUTE_PATTERNS:
        for match in pattern.finditer(text):
            if _overlaps(match.span(), statute_spans):
                continue
            statute_spans.append(match.span())
            found.append((match.start(), "statute", " ".join(match.group(0).split())))

    for match in SECTION_PATTERN.finditer(text):
        if not _overlaps(match.span(), statute_spans):
            found.append((match.start(), "statute", " ".join(match.group(0).split())))

    for match in REPORTER_PATTERN.finditer(text):
        found.append((match.start(), "reporter", " ".join(match.group(0).split())))

    for match in CASE_NAME_PATTERN.finditer(text):
        plaintiff = _clean_case_name(match.group(1))
        defendant = _clean_case_name(match.group(2))
        if plaintiff and defendant:
            found.append((match.start(), "case", f"{plaintiff} v. {defendant}"))

    found.sort(key=lambda item: item[0])

    seen = set()
    citations: List[Dict[str, str]] = []
    for _, kind, citation in found:
        key = (kind, citation.lower())
        if key in seen:
            continue
        seen.add(key)
        citations.append({"type": kind, "citation": citation})
    return citations


def merge_citations(*groups: Iterable[Any]) -> List[Any]:
    """Concatenate citation lists, dropping exact duplicates.

    Entries may be plain strings (source URLs) or dicts.
    """
    merged: List[Any] = []
    seen = set()
    for group in groups:
        for citation in group or []:
            key = json.dumps(citation, sort_keys=True, default=str)
            if key in seen:
                continue
            seen.add(key)
            merged.append(citation)
    return merged
