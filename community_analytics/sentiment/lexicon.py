"""Word lists used by the lexicon sentiment scorer and the rule-based model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Lexicon:
    positive: frozenset[str]
    negative: frozenset[str]
    intensifiers: frozenset[str]
    negators: frozenset[str]


POSITIVE_WORDS = frozenset(
    [
        "good", "great", "excellent", "amazing", "wonderful", "fantastic",
        "love", "like", "happy", "excited", "awesome", "brilliant",
        "outstanding", "perfect", "beautiful", "incredible", "superb",
        "delighted", "pleased", "satisfied", "content", "joyful",
        "cheerful", "optimistic", "hopeful", "successful", "achievement",
        "victory", "triumph", "celebration", "congratulations", "praise",
    ]
)

NEGATIVE_WORDS = frozenset(
    [
        "bad", "terrible", "awful", "hate", "dislike", "angry", "sad",
        "disappointed", "frustrated", "horrible", "disgusting", "annoying",
        "irritating", "upset", "worried", "concerned", "fearful",
        "depressed", "miserable", "unhappy", "disgusted", "outraged",
        "furious", "devastated", "crushed", "failure", "disaster",
        "catastrophe", "crisis", "problem", "issue", "complaint",
        "criticism",
    ]
)

INTENSIFIERS = frozenset(
    ["very", "extremely", "incredibly", "absolutely", "completely",
     "totally", "really", "so"]
)

NEGATORS = frozenset(
    ["not", "no", "never", "none", "nothing", "nowhere", "neither", "nor"]
)


DEFAULT_LEXICON = Lexicon(
    positive=POSITIVE_WORDS,
    negative=NEGATIVE_WORDS,
    intensifiers=INTENSIFIERS,
    negators=NEGATORS,
)
