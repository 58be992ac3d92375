"""
Split a generated support reply into problem summary, solution and compensation.

The generator is told to emit three parts separated by `---` with no section
labels, but in practice it sometimes adds PROBLEM_SUMMARY/SOLUTION/COMPENSATION
headers or repeats the whole answer. Labels are recognised only as uppercase
whole words so ordinary prose ("the solution is...") is left alone.
"""

import logging
import re

from support_engine.models import ParsedReply

logger = logging.getLogger(__name__)

DELIMITER = "---"
MAX_SUMMARY_LENGTH = 800
# A summary this long that still contains a delimiter was probably not split.
DELIMITED_SUMMARY_LENGTH = 300

_ROLE_PREFIXES = tuple(
    re.compile(rf"^{label}:\s*", re.IGNORECASE) for label in ("System", "Human", "Assistant", "AI", "Bot")
)
_QUOTED_ECHO = re.compile(r"^[\"'].*?[\"']\s*")

_LABELS = ("PROBLEM_SUMMARY", "SOLUTION", "COMPENSATION")
_ANY_LABEL = r"\b(?:PROBLEM_SUMMARY|SOLUTION|COMPENSATION)\b"
_DUPLICATE_PATTERNS = tuple(re.compile(rf"\b{label}\b[\s\S]*?\b{label}\b") for label in _LABELS)

# First occurrence of each section, bounded by the next label, a delimiter or end of text.
_FIRST_SECTION = {
    label: re.compile(rf"\b{label}\b:?\s*([\s\S]*?)(?={_ANY_LABEL}|{DELIMITER}|\Z)")
    for label in _LABELS
}
_LEADING_HEADER = {label: re.compile(rf"^(?:### ?)?{label}\b:?\n?") for label in _LABELS}
_HEADER_LINE = re.compile(r"^(?:### ?)?(?:PROBLEM_SUMMARY|SOLUTION|COMPENSATION):?[ \t]*$", re.MULTILINE)
_INLINE_HEADER = re.compile(rf"(?:### ?)?{_ANY_LABEL}:?\s*")


def clean_reply(text: str) -> str:
    """Drop leaked role prefixes and a leading quoted echo of the prompt."""
    cleaned = text or ""
    for prefix in _ROLE_PREFIXES:
        cleaned = prefix.sub("", cleaned, count=1)
    cleaned = _QUOTED_ECHO.sub("", cleaned, count=1)
    return cleaned.strip()


def has_duplication(text: str) -> bool:
    return any(p.search(text) for p in _DUPLICATE_PATTERNS)


def _first_section(text: str, label: str) -> str:
    m = _FIRST_SECTION[label].search(text)
    return m.group(1).strip() if m else ""


def _strip_header(part: str, label: str) -> str:
    return _LEADING_HEADER[label].sub("", part.strip(), count=1).strip()


def _split_duplicated(text: str) -> tuple[str, str, str]:
    problem = _first_section(text, "PROBLEM_SUMMARY")
    solution = _first_section(text, "SOLUTION")
    compensation = _first_section(text, "COMPENSATION")
    if not problem:
        # Unlabelled opening text before the first label is the acknowledgment.
        first = re.search(_ANY_LABEL, text)
        if first:
            problem = text[:first.start()].split(DELIMITER)[0].strip().lstrip("#").strip()
    return problem, solution, compensation


def _split_delimited(text: str) -> tuple[str, str, str]:
    parts = [p.strip() for p in text.split(DELIMITER)]
    if len(parts) >= 3:
        return (
            _strip_header(parts[0], "PROBLEM_SUMMARY"),
            _strip_header(parts[1], "SOLUTION"),
            _strip_header(parts[2], "COMPENSATION"),
        )
    if len(parts) == 2:
        return _strip_header(parts[0], "PROBLEM_SUMMARY"), _strip_header(parts[1], "SOLUTION"), ""
    if _HEADER_LINE.search(text):
        sections = [s.strip() for s in _HEADER_LINE.split(text) if s and s.strip()]
        sections += [""] * (3 - len(sections))
        return sections[0], sections[1], sections[2]
    return text, "", ""


def resplit_long_summary(problem: str, solution: str, compensation: str) -> tuple[str, str, str]:
    """
    Last-resort split of a summary that still carries `---` parts.

    The splitters above already consume every delimiter, so for replies that
    went through them this is a no-op guard. Empty solution/compensation are
    filled from the extra parts; non-empty ones are kept.
    """
    if len(problem) <= MAX_SUMMARY_LENGTH and not (DELIMITER in problem and len(problem) > DELIMITED_SUMMARY_LENGTH):
        return problem, solution, compensation
    logger.debug("Problem summary suspiciously long (%d chars); re-splitting", len(problem))
    parts = problem.split(DELIMITER)
    if len(parts) < 2:
        return problem, solution, compensation
    problem = parts[0].strip()
    if not solution:
        solution = parts[1].strip()
    if not compensation and len(parts) > 2:
        compensation = parts[2].strip()
    return problem, solution, compensation


def parse_structured_reply(raw_text: str) -> ParsedReply:
    """Parse a three-part reply. Never raises; unstructured text becomes the problem summary."""
    text = clean_reply(raw_text)

    problem = solution = compensation = ""
    duplicated = has_duplication(text)
    if duplicated:
        logger.debug("Duplicated sections in generated reply; extracting first occurrences")
        problem, solution, compensation = _split_duplicated(text)
    if not (problem or solution or compensation):
        problem, solution, compensation = _split_delimited(text)

    problem = _INLINE_HEADER.sub("", problem).strip()
    solution = _INLINE_HEADER.sub("", solution).strip()
    compensation = _INLINE_HEADER.sub("", compensation).strip()

    problem, solution, compensation = resplit_long_summary(problem, solution, compensation)

    parsed = ParsedReply(
        problem_summary=problem,
        solution=solution,
        compensation_text=compensation,
        has_compensation=bool(compensation),
    )
    logger.debug(
        "Parsed reply: duplicated=%s problem=%d solution=%d compensation=%d",
        duplicated, len(problem), len(solution), len(compensation),
    )
    return parsed
