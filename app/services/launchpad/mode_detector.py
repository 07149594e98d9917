"""Classify uploaded document text as structured OKR markup or narrative prose.

The classification picks the prompt strategy used by the plan proposer.
It is a heuristic: a false negative falls back to inference mode and a false
positive falls back to extraction mode, and the normalizer tolerates the
output of either.
"""

import re
from enum import Enum
from typing import Any, List, Pattern

from app.core.config import settings


class DocumentMode(str, Enum):
    """Extraction strategy chosen for a document."""
    STRUCTURED = "structured"
    NARRATIVE = "narrative"


STRUCTURED_PATTERNS: List[Pattern[str]] = [
    re.compile(r"\bobjective\s*\d+\s*:", re.IGNORECASE),                 # "Objective 1:"
    re.compile(r"\bKR\s*\d+\s*:", re.IGNORECASE),                        # "KR1:", "KR 1:"
    re.compile(r"\bkey\s*result\s*\d+\s*:", re.IGNORECASE),              # "Key Result 1:"
    re.compile(r"\bobjectives?\s*&?\s*key\s*results?", re.IGNORECASE),   # "Objectives & Key Results"
    re.compile(r"\bOKR\s*(hierarchy|framework)", re.IGNORECASE),         # "OKR framework"
    re.compile(r"\bteam\s+objectives?\s*:", re.IGNORECASE),              # "Team Objectives:"
    re.compile(r"\borganizational\s+objectives?\s*:", re.IGNORECASE),    # "Organizational Objectives:"
    re.compile(r"\bdepartment\s+objectives?\s*:", re.IGNORECASE),        # "Department Objectives:"
    re.compile(r"\bbig\s*rocks?\s*\(", re.IGNORECASE),                   # "Big Rocks (Q1)"
    re.compile(r"\bquarterly\s+initiatives?\s*:", re.IGNORECASE),        # "Quarterly Initiatives:"
]


def count_structured_patterns(text: Any) -> int:
    """Count how many distinct structured-OKR patterns occur at least once."""
    if not isinstance(text, str) or not text:
        return 0
    return sum(1 for pattern in STRUCTURED_PATTERNS if pattern.search(text))


def detect_mode(text: Any, threshold: int = None) -> DocumentMode:
    """Classify text as structured when enough distinct patterns match.

    Args:
        text: Extracted document text. Non-string input is treated as empty.
        threshold: Minimum number of distinct pattern matches for structured mode

    Returns:
        DocumentMode.STRUCTURED or DocumentMode.NARRATIVE
    """
    if threshold is None:
        threshold = settings.launchpad.structured_pattern_threshold

    if count_structured_patterns(text) >= threshold:
        return DocumentMode.STRUCTURED
    return DocumentMode.NARRATIVE
