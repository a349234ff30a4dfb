"""
Stance classification between an analyzed text and a related argument.

``LexicalStanceClassifier`` is a best-effort word-level heuristic, not an
entailment model. Anything implementing ``StanceClassifier.classify`` can be
passed to the orchestrator instead.
"""

import re
from typing import Literal, Protocol

Stance = Literal["support", "refute", "neutral"]

NEGATION_WORDS = ("not", "never", "disagree", "wrong", "incorrect", "false", "but")
SUPPORT_OVERLAP_RATIO = 0.4
MIN_OVERLAP_WORD_LENGTH = 4


class StanceClassifier(Protocol):
    def classify(self, content: str, related_content: str) -> Stance:
        ...


class LexicalStanceClassifier:
    def classify(self, content: str, related_content: str) -> Stance:
        content_lower = content.lower()
        related_lower = related_content.lower()

        first_word = content_lower.split(" ")[0] if content_lower else ""
        if first_word and any(f"{negation} {first_word}" in related_lower for negation in NEGATION_WORDS):
            return "refute"

        content_words = set(re.split(r"\s+", content_lower.strip())) - {""}
        related_words = set(re.split(r"\s+", related_lower.strip())) - {""}
        union = content_words | related_words
        if not union:
            return "neutral"

        overlap = sum(
            1 for word in content_words & related_words if len(word) >= MIN_OVERLAP_WORD_LENGTH
        )
        if overlap / len(union) > SUPPORT_OVERLAP_RATIO:
            return "support"
        return "neutral"
