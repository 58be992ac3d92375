"""
Keyword/pattern sentiment analyzer: tone, intensity in [1, 10] and whether the
player needs a human agent.

Rules are applied in priority order (anger, frustration, urgency, calm). An
account-lock context raises the baseline intensity, since being locked out is
stressful on its own. The analyzer never raises; unmatched text is calm.
"""

import logging

from support_engine.lexicons import DEFAULT_LEXICONS, Lexicons
from support_engine.models import SentimentResult, Tone

logger = logging.getLogger(__name__)

# (normal, account-lock) intensities per tone
_ANGRY_INTENSITY = (8, 9)
_FRUSTRATED_INTENSITY = (7, 7)
_URGENT_INTENSITY = (7, 7)
_CALM_INTENSITY = (3, 4)

HUMAN_TONES = frozenset({Tone.FRUSTRATED, Tone.ANGRY, Tone.AGITATED})
HUMAN_INTENSITY_THRESHOLD = 6


def requires_human(tone: Tone, intensity: int) -> bool:
    """Escalation rule: upset tones above the intensity threshold (anger always) go to a person."""
    if tone == Tone.ANGRY:
        return True
    return tone in HUMAN_TONES and intensity > HUMAN_INTENSITY_THRESHOLD


class SentimentAnalyzer:
    """Deterministic tone detector over an injected `Lexicons` bundle."""

    def __init__(self, lexicons: Lexicons = DEFAULT_LEXICONS):
        self.lexicons = lexicons

    def analyze(self, text: str, account_lock: bool = False) -> SentimentResult:
        if not text or not text.strip():
            return self._result(Tone.CALM, _CALM_INTENSITY, account_lock)

        lx = self.lexicons
        has_anger_words = bool(lx.anger_re.search(text))
        has_caps = bool(lx.caps_re.search(text))
        has_exclamations = text.count("!") > 1

        if has_anger_words or (has_caps and has_exclamations):
            return self._result(Tone.ANGRY, _ANGRY_INTENSITY, account_lock)
        if lx.frustration_re.search(text) or has_exclamations:
            return self._result(Tone.FRUSTRATED, _FRUSTRATED_INTENSITY, account_lock)
        if lx.urgency_re.search(text):
            return self._result(Tone.URGENT, _URGENT_INTENSITY, account_lock)
        return self._result(Tone.CALM, _CALM_INTENSITY, account_lock)

    @staticmethod
    def _result(tone: Tone, intensities: tuple[int, int], account_lock: bool) -> SentimentResult:
        intensity = intensities[1] if account_lock else intensities[0]
        result = SentimentResult(tone=tone, intensity=intensity, requires_human=requires_human(tone, intensity))
        logger.debug("Sentiment: tone=%s intensity=%d human=%s", tone.value, intensity, result.requires_human)
        return result


_default_analyzer = SentimentAnalyzer()


def analyze_sentiment(text: str, account_lock: bool = False) -> SentimentResult:
    """Analyze `text` with the built-in lexicons."""
    return _default_analyzer.analyze(text, account_lock=account_lock)
