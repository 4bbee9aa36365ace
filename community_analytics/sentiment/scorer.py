import logging

from community_analytics.constants import Thresholds
from community_analytics.sentiment.lexicon import DEFAULT_LEXICON, Lexicon
from community_analytics.sentiment.schemas import SentimentLabel, SentimentResult
from community_analytics.utils import clamp


logger = logging.getLogger(__name__)

INTENSIFIER_STEP = 0.3


def sentiment_label(score: float) -> SentimentLabel:
    """Map a normalized score to its label using the ±0.1 band."""
    if score > Thresholds.SENTIMENT_LABEL:
        return "positive"
    if score < -Thresholds.SENTIMENT_LABEL:
        return "negative"
    return "neutral"


class LexiconSentimentScorer:
    """
    Weighted word-category sentiment scorer.

    The scan is order dependent: intensifiers scale the running total by
    ``1 + 0.3 * intensifiers_seen`` and negators flip the sign of the running
    total at the point they occur. Neither is a look-ahead on the next word.
    """

    def __init__(self, lexicon: Lexicon = DEFAULT_LEXICON):
        self.lexicon = lexicon

    def score(self, text: str) -> SentimentResult:
        """
        Score a text.

        Args:
            text: Raw text to analyze

        Returns:
            SentimentResult: Score in [-1, 1], label and confidence in [0.1, 1]
        """
        normalized = self.raw_score(text)
        return SentimentResult(
            sentiment_score=normalized,
            sentiment_label=sentiment_label(normalized),
            confidence_score=self.confidence(text, normalized),
        )

    def raw_score(self, text: str) -> float:
        words = text.lower().split()
        score = 0.0
        word_count = 0
        intensifier_count = 0

        for word in words:
            word_count += 1

            if word in self.lexicon.positive:
                score += 1
            elif word in self.lexicon.negative:
                score -= 1
            elif word in self.lexicon.intensifiers:
                intensifier_count += 1
                score *= 1 + intensifier_count * INTENSIFIER_STEP
            elif word in self.lexicon.negators:
                score *= -1

        return clamp(score / max(word_count, 1), -1.0, 1.0)

    @staticmethod
    def confidence(text: str, score: float) -> float:
        confidence = 0.5

        # Longer texts carry more signal
        if len(text) > 50:
            confidence += 0.2
        if len(text) > 100:
            confidence += 0.1

        confidence += abs(score) * 0.3

        if len(text.split()) > 10:
            confidence += 0.1

        return clamp(confidence, 0.1, 1.0)
