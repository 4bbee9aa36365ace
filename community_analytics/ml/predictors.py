import random
from typing import Any

from community_analytics.ml.schemas import LexiconModelParams, LinearModelParams
from community_analytics.sentiment.scorer import sentiment_label
from community_analytics.utils import clamp


class ModelInputError(ValueError):
    """Raised when a prediction input does not fit the model."""


def _input_text(model_input: dict[str, Any]) -> str:
    text = model_input.get("text")
    if not isinstance(text, str):
        raise ModelInputError('Sentiment input needs a "text" string')
    return text


def _input_features(model_input: dict[str, Any]) -> list[float]:
    features = model_input.get("features")
    if not isinstance(features, (list, tuple)):
        raise ModelInputError('Trend input needs a "features" list')
    # bool is an int subclass but never a feature value
    if any(
        isinstance(feature, bool) or not isinstance(feature, (int, float))
        for feature in features
    ):
        raise ModelInputError("Trend features must be numbers")
    return [float(feature) for feature in features]


def replay_lexicon(
    params: LexiconModelParams, model_input: dict[str, Any]
) -> tuple[dict[str, Any], float]:
    """
    Score ``model_input["text"]`` with the stored rules and weights.

    Positive and negative words add their weight; intensifiers and negators
    multiply the running score by theirs. Confidence is the magnitude of the
    normalized score.
    """
    rules = params.rules
    weights = params.weights
    positive = set(rules.positive_words)
    negative = set(rules.negative_words)
    intensifiers = set(rules.intensifiers)
    negators = set(rules.negators)

    words = _input_text(model_input).lower().split()
    score = 0.0
    word_count = 0

    for word in words:
        word_count += 1

        if word in positive:
            score += weights.positive
        elif word in negative:
            score += weights.negative
        elif word in intensifiers:
            score *= weights.intensifier
        elif word in negators:
            score *= weights.negator

    normalized = clamp(score / max(word_count, 1), -1.0, 1.0)

    prediction = {
        "sentiment": sentiment_label(normalized),
        "score": normalized,
    }
    return prediction, abs(normalized)


def apply_linear(
    params: LinearModelParams,
    model_input: dict[str, Any],
    rng: random.Random,
) -> tuple[dict[str, Any], float]:
    """
    Evaluate ``intercept + sum(feature * coefficient)``.

    Extra features or coefficients beyond the shorter list are ignored. The
    confidence is a placeholder drawn from [0.7, 1.0].
    """
    features = _input_features(model_input)
    value = params.intercept + sum(
        feature * coefficient
        for feature, coefficient in zip(features, params.coefficients)
    )

    if value > 0:
        direction = "rising"
    elif value < 0:
        direction = "falling"
    else:
        direction = "stable"

    confidence = clamp(0.7 + rng.random() * 0.3, 0.0, 1.0)

    prediction = {"trend_value": value, "direction": direction}
    return prediction, confidence
