"""
Pull a classification object out of free-form generator output.

Pipeline, each step a pure function:
  1. extract_fenced_block   - a ```json {...} ``` (or bare ```) code block
  2. scan_balanced_objects  - every top-level balanced {...} substring
  3. select_candidate       - first candidate mentioning an expected key, else the last
  4. ClassificationPayload  - strict schema validation of the decoded object

parse_classification runs the pipeline and raises ClassificationParseError on
any failure; the classifier recovers from that with its keyword fallback.
"""

import json
import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from support_engine.errors import ClassificationParseError
from support_engine.models import CategoryId, RouteDecision, Urgency

logger = logging.getLogger(__name__)

_FENCED_RE = re.compile(r"```(?:json|JSON)?\s*(\{[\s\S]*?\})\s*```")
EXPECTED_KEYS = ("suggestedCategories", "autoResolvable")


def extract_fenced_block(text: str) -> Optional[str]:
    m = _FENCED_RE.search(text or "")
    return m.group(1) if m else None


def _match_brace(text: str, start: int) -> Optional[int]:
    """Index of the `}` closing the `{` at `start`, skipping braces inside JSON strings."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def scan_balanced_objects(text: str) -> list[str]:
    """All top-level balanced-brace substrings, in order. An unclosed `{` is skipped."""
    text = text or ""
    found: list[str] = []
    i = 0
    while i < len(text):
        if text[i] == "{":
            end = _match_brace(text, i)
            if end is not None:
                found.append(text[i:end + 1])
                i = end + 1
                continue
        i += 1
    return found


def select_candidate(candidates: list[str]) -> Optional[str]:
    if not candidates:
        return None
    for c in candidates:
        if any(k in c for k in EXPECTED_KEYS):
            return c
    return candidates[-1]


def extract_json_candidate(text: str) -> Optional[str]:
    fenced = extract_fenced_block(text)
    if fenced is not None:
        return fenced
    return select_candidate(scan_balanced_objects(text))


class SuggestionPayload(BaseModel):
    id: CategoryId
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""


class ClassificationPayload(BaseModel):
    """Schema the generator is asked to produce (camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True)

    suggested_categories: list[SuggestionPayload] = Field(..., alias="suggestedCategories")
    auto_resolvable: bool = Field(False, alias="autoResolvable")
    route_decision: RouteDecision = Field(RouteDecision.HUMAN, alias="routeDecision")
    reasoning: str = ""
    suggested_urgency: Urgency = Field(Urgency.MEDIUM, alias="suggestedUrgency")
    # Model-reported sentiment is informational only; sentiment is always recomputed locally.
    sentiment: Optional[dict[str, Any]] = None


def parse_classification(raw_text: str) -> ClassificationPayload:
    candidate = extract_json_candidate(raw_text)
    if candidate is None:
        raise ClassificationParseError("No JSON object found in generator output", raw_text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ClassificationParseError(f"Invalid JSON in generator output: {e}", raw_text) from e
    if not isinstance(data, dict):
        raise ClassificationParseError("Generator output JSON is not an object", raw_text)
    try:
        return ClassificationPayload.model_validate(data)
    except PydanticValidationError as e:
        raise ClassificationParseError(f"Classification schema mismatch: {e.error_count()} error(s)", raw_text) from e
