"""
Keyword classifier assigning grants to business verticals.

Rules are evaluated in order and the first match wins, so a grant that
mentions both "workforce" and "health" lands in Workforce Development.
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from fetchers.utils import join_text

logger = structlog.get_logger()

DEFAULT_VERTICAL = "Other"

VERTICAL_RULES: List[Tuple[str, "re.Pattern[str]"]] = [
    ("Workforce Development", re.compile(
        r"\b(workforce|employment|job training|career|apprentice|labor|occupational"
        r"|vocational training|wioa)\b"
    )),
    ("Aging Services", re.compile(
        r"\b(aging|elderly|senior|older adult|elder care|geriatric"
        r"|nutrition for the elderly|meals on wheels)\b"
    )),
    ("Veterans", re.compile(
        r"\b(veteran|veterans|va medical|military service|veteran affairs)\b"
    )),
    ("CVI Prevention", re.compile(
        r"\b(violence intervention|violence prevention|community violence"
        r"|crime prevention|juvenile justice|gang|victim)\b"
    )),
    ("Home Visiting", re.compile(
        r"\b(home visiting|maternal health|child health|early childhood|home visitation"
        r"|maternal infant|prenatal|postpartum|family support|healthy start)\b"
    )),
    ("Re-entry", re.compile(
        r"\b(reentry|re-entry|prisoner reintegration|correctional|prison|incarceration"
        r"|offender|recidivism|post-release|second chance)\b"
    )),
    ("Energy & Environment", re.compile(
        r"\b(energy|renewable|solar|wind|climate|environment|conservation|emission"
        r"|carbon|battery|electric|hydrogen|green|sustainable|recycl)\b"
    )),
    ("Transportation & Infrastructure", re.compile(
        r"\b(transportation|transit|highway|airport|port|infrastructure|rail|bridge"
        r"|road|traffic)\b"
    )),
    ("Education", re.compile(
        r"\b(education|school|student|academic|university|college|learning|literacy"
        r"|teach)\b"
    )),
    ("Healthcare", re.compile(
        r"\b(health|medical|hospital|clinic|disease|mental health|substance abuse"
        r"|treatment|patient|care)\b"
    )),
]

# Vertical -> federal agency ALN prefixes, used by discovery filters
VERTICAL_ALN_PREFIXES: Dict[str, List[str]] = {
    "Aging Services": ["93"],
    "CVI Prevention": ["16"],
    "Education": ["84"],
    "Energy & Environment": ["81", "66"],
    "Healthcare": ["93"],
    "Higher Education": ["84"],
    "Home Visiting": ["93"],
    "K-12 Education": ["84"],
    "Medicaid": ["93"],
    "Public Health": ["93"],
    "Public Safety": ["16", "97"],
    "Re-entry": ["16"],
    "Transportation": ["20"],
    "Transportation & Infrastructure": ["20"],
    "Veterans": ["64"],
    "Workforce Development": ["17"],
    "Other": [],
}


def prefixes_for_verticals(verticals: Iterable[str]) -> List[str]:
    """
    Union of ALN prefixes for the given verticals, first-seen order kept.

    Unknown vertical names contribute nothing.
    """
    prefixes: List[str] = []
    for name in verticals:
        for prefix in VERTICAL_ALN_PREFIXES.get(name, []):
            if prefix not in prefixes:
                prefixes.append(prefix)
    return prefixes


class VerticalClassifier:
    """Classify grant text into one vertical name."""

    def __init__(self, rules: Optional[List[Tuple[str, "re.Pattern[str]"]]] = None):
        self.rules = rules if rules is not None else VERTICAL_RULES

    @staticmethod
    def _text(texts: Iterable[Optional[str]]) -> str:
        return join_text(texts).lower()

    def classify(self, *texts: Optional[str]) -> str:
        """
        Return the first vertical whose rule matches, else "Other".

        Args:
            *texts: CFDA title, description, agency, sub-agency, recipient

        Returns:
            Vertical name; never None
        """
        text = self._text(texts)
        if not text:
            return DEFAULT_VERTICAL

        for name, pattern in self.rules:
            if pattern.search(text):
                return name

        return DEFAULT_VERTICAL

    def matching_verticals(self, *texts: Optional[str]) -> List[str]:
        """Every vertical whose rule matches, in rule order."""
        text = self._text(texts)
        if not text:
            return []
        return [name for name, pattern in self.rules if pattern.search(text)]

    def classify_logged(self, *texts: Optional[str]) -> str:
        """Classify and log when more than one rule matched."""
        matches = self.matching_verticals(*texts)
        if len(matches) > 1:
            logger.debug("vertical_overlap", chosen=matches[0], also_matched=matches[1:])
        return matches[0] if matches else DEFAULT_VERTICAL
