"""
Keyword lexicons and regex heuristics used by the sentiment analyzer, the
keyword classifier and the resolution engine.

Lexicons are immutable; pass an alternate `Lexicons` to `SupportEngine` to
swap them (e.g. in tests or for another game).

Keywords match at the start of a word ("crash" matches "crashing"), never in
the middle of one, so "unlocked" and "blocked" do not read as "locked".
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Pattern

from support_engine.models import CategoryId, Urgency


@lru_cache(maxsize=None)
def keyword_pattern(keywords: tuple[str, ...], whole_word: bool = False) -> Pattern[str]:
    """Case-insensitive alternation of `keywords`, anchored at a word start (and end if `whole_word`)."""
    body = "|".join(re.escape(k) for k in keywords) or r"(?!)"
    tail = r"\b" if whole_word else ""
    return re.compile(rf"\b(?:{body}){tail}", re.IGNORECASE)


def mentions_any(text: str, keywords: tuple[str, ...], whole_word: bool = False) -> bool:
    return bool(keyword_pattern(keywords, whole_word).search(text or ""))


@dataclass(frozen=True)
class KeywordRule:
    """Fallback classification rule: any keyword selects the category."""

    category: CategoryId
    keywords: tuple[str, ...]
    urgency: Urgency
    auto_resolvable: bool
    # Any of these keywords raises urgency to HIGH (e.g. "crash" for technical issues).
    escalating_keywords: tuple[str, ...] = ()

    def matches(self, text_lower: str) -> bool:
        return mentions_any(text_lower, self.keywords)

    def urgency_for(self, text_lower: str) -> Urgency:
        if mentions_any(text_lower, self.escalating_keywords):
            return Urgency.HIGH
        return self.urgency


# Priority order matters: first match wins.
CATEGORY_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(CategoryId.ACCOUNT_ACCESS, ("login", "password", "locked"), Urgency.HIGH, True),
    KeywordRule(CategoryId.MISSING_REWARDS, ("reward", "missing", "didn't receive"), Urgency.MEDIUM, True),
    KeywordRule(CategoryId.PURCHASE_ISSUES, ("purchase", "payment", "refund"), Urgency.HIGH, True),
    KeywordRule(
        CategoryId.TECHNICAL,
        ("crash", "lag", "connection"),
        Urgency.MEDIUM,
        True,
        escalating_keywords=("crash",),
    ),
    KeywordRule(CategoryId.GAMEPLAY, ("gameplay", "bug", "balance"), Urgency.LOW, False),
    KeywordRule(CategoryId.ACCOUNT_RECOVERY, ("lost", "restore", "recovery"), Urgency.HIGH, False),
)

# Leading \b keeps "shell" and "hello" out; suffixes cover "hated", "damnit", "stupidest".
ANGER_PATTERN = (
    r"\b(?:damn\w*|hell|shit\w*|wtf|stupid\w*|ridiculous\w*|terribl\w*|awful\w*"
    r"|hat(?:e|ed|es|ing)|furious\w*|pissed|angr\w*)\b"
)
FRUSTRATION_PATTERN = r"\b(?:frustrated|frustrating|annoying|disappointed|upset|mad|irritated)\b"
URGENCY_PATTERN = r"\b(?:urgent|immediately|asap)\b"
# 3+ consecutive capitals (shouting). Case-sensitive.
CAPS_PATTERN = r"[A-Z]{3,}"


@dataclass(frozen=True)
class Lexicons:
    """Bundle of compiled patterns and keyword tuples. Read-only at runtime."""

    anger_re: Pattern[str] = field(default_factory=lambda: re.compile(ANGER_PATTERN, re.IGNORECASE))
    frustration_re: Pattern[str] = field(default_factory=lambda: re.compile(FRUSTRATION_PATTERN, re.IGNORECASE))
    urgency_re: Pattern[str] = field(default_factory=lambda: re.compile(URGENCY_PATTERN, re.IGNORECASE))
    caps_re: Pattern[str] = field(default_factory=lambda: re.compile(CAPS_PATTERN))
    category_rules: tuple[KeywordRule, ...] = CATEGORY_RULES
    # Descriptions that put the resolution engine into the account-lock sub-flow.
    lock_keywords: tuple[str, ...] = ("locked", "suspended", "banned", "cannot login", "account blocked")
    # Descriptions that send a verification-flagged player into the lock verification flow.
    verification_keywords: tuple[str, ...] = ("login", "access", "locked", "cannot", "banned")
    # Any of these means the message describes a problem worth a support case.
    issue_keywords: tuple[str, ...] = (
        "broken", "help", "problem", "issue", "bug", "crash", "error",
        "cant", "can't", "wont", "won't", "missing", "lost", "locked",
        "access", "login", "fail", "failed", "not work", "doesnt work",
        "doesn't work", "get in", "log in", "stuck", "freeze", "frozen",
    )

    def is_lock_description(self, text: str) -> bool:
        return mentions_any(text, self.lock_keywords, whole_word=True)

    def mentions_account_access(self, text: str) -> bool:
        return mentions_any(text, self.verification_keywords)

    def has_issue_keyword(self, text: str) -> bool:
        return mentions_any(text, self.issue_keywords)


DEFAULT_LEXICONS = Lexicons()
