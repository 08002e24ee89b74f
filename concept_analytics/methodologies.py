from __future__ import annotations

import re
from typing import Any

METHODOLOGY_PATTERNS: dict[str, re.Pattern[str]] = {
    "Qualitative": re.compile(r"\bqualitative\b", re.IGNORECASE),
    "Quantitative": re.compile(r"\bquantitative\b", re.IGNORECASE),
    "Mixed Methods": re.compile(r"\bmixed[- ]methods?\b", re.IGNORECASE),
    "Case Study": re.compile(r"\bcase\s+stud(?:y|ies)\b", re.IGNORECASE),
    "Ethnography": re.compile(r"\bethnograph(?:y|ic)\b", re.IGNORECASE),
    "Grounded Theory": re.compile(r"\bgrounded\s+theory\b", re.IGNORECASE),
    "Phenomenology": re.compile(r"\bphenomenolog(?:y|ical)\b", re.IGNORECASE),
    "Action Research": re.compile(r"\baction\s+research\b", re.IGNORECASE),
    "Narrative Inquiry": re.compile(r"\bnarrative\s+(?:inquiry|research|analysis)\b", re.IGNORECASE),
    "Survey": re.compile(r"\bsurveys?\b", re.IGNORECASE),
    "Experimental": re.compile(r"\bexperimental\b", re.IGNORECASE),
    "Longitudinal": re.compile(r"\blongitudinal\b", re.IGNORECASE),
    "Content Analysis": re.compile(r"\bcontent\s+analysis\b", re.IGNORECASE),
    "Discourse Analysis": re.compile(r"\bdiscourse\s+analysis\b", re.IGNORECASE),
    "Interviews": re.compile(r"\binterview(?:s|ing)?\b", re.IGNORECASE),
    "Autoethnography": re.compile(r"\bautoethnograph(?:y|ic)\b", re.IGNORECASE),
    "Participatory": re.compile(r"\bparticipatory\b", re.IGNORECASE),
}


def detect_methodologies(text: Any) -> list[str]:
    s = str(text or "")
    return [label for label, pattern in METHODOLOGY_PATTERNS.items() if pattern.search(s)]
