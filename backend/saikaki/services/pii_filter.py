# saikaki/services/pii_filter.py
"""
Personal-information filter applied to user messages before they are stored
or sent to a provider.
"""
from __future__ import annotations

import logging
import re
from typing import List, Pattern, Tuple

logger = logging.getLogger(__name__)

# Order matters: card numbers and SSNs would otherwise be eaten by the phone pattern.
_RULES: List[Tuple[str, Pattern[str], str]] = [
    ("email", re.compile(r"\b[\w.+-]+@[\w-]+(?:\.[\w-]+)*\.[A-Za-z]{2,}\b"), "[email removed]"),
    ("card", re.compile(r"\b(?:\d[ -]?){12,18}\d\b"), "[card number removed]"),
    ("ssn", re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "[SSN removed]"),
    (
        "phone",
        re.compile(r"(?<!\w)(?:\+?\d{1,3}[\s.-]?)?(?:\(\d{3}\)|\d{3})[\s.-]?\d{3}[\s.-]?\d{4}\b"),
        "[phone removed]",
    ),
]


def filter_personal_information(text: str) -> str:
    redacted = text
    for name, pattern, replacement in _RULES:
        redacted, n = pattern.subn(replacement, redacted)
        if n:
            logger.info(f"Redacted {n} {name} value(s) from user message")
    return redacted


class PersonalInfoFilter:
    """Async string -> string collaborator used by the turn handlers."""

    async def __call__(self, text: str) -> str:
        return filter_personal_information(text)
