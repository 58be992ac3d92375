"""Error taxonomy for the support decision engine."""

from typing import Optional


class SupportEngineError(Exception):
    """Base class for engine errors."""


class ValidationError(SupportEngineError, ValueError):
    """Caller input is malformed or out of range; raised before any computation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Invalid {field}: {message}")


class ClassificationParseError(SupportEngineError):
    """Generator output did not contain a usable classification object."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        self.raw_text = raw_text
        super().__init__(message)


class RuleLookupMiss(SupportEngineError):
    """No compensation rule exists for a tier x impact pair."""

    def __init__(self, tier: str, impact: str):
        self.tier = tier
        self.impact = impact
        super().__init__(f"No compensation rule for {tier}/{impact}")


class UpstreamUnavailable(SupportEngineError):
    """The text-generation service timed out, errored or returned nothing."""
