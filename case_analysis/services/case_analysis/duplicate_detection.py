"""Heuristic duplicate detection for saved analyses.

Two texts count as duplicates when their normalized hashes match or one
normalized text contains the other. Paraphrases are not detected.
"""

import hashlib
import re
from typing import Iterable, Optional

# Containment checks below this length are too noisy to trust
MIN_CONTAINMENT_LENGTH = 200


def normalize_content(text: str) -> str:
    """Lower-case and collapse whitespace."""
    return re.sub(r"\s+", " ", text or "").strip().lower()


def content_hash(text: str) -> str:
    """SHA-256 hex digest of the normalized text."""
    return hashlib.sha256(normalize_content(text).encode("utf-8")).hexdigest()


def find_duplicate(new_text: str, existing_texts: Iterable[str]) -> Optional[str]:
    """Return the first existing text that duplicates ``new_text``, if any."""
    candidate = normalize_content(new_text)
    if not candidate:
        return None

    candidate_hash = content_hash(candidate)
    for existing in existing_texts:
        normalized = normalize_content(existing)
        if not normalized:
            continue
        if content_hash(normalized) == candidate_hash:
            return existing

        shorter = min(len(candidate), len(normalized))
        if shorter >= MIN_CONTAINMENT_LENGTH and (candidate in normalized or normalized in candidate):
            return existing
    return None


def is_duplicate(new_text: str, existing_texts: Iterable[str]) -> bool:
    return find_duplicate(new_text, existing_texts) is not None
