"""
Heuristic Analyzer

Deterministic, model-free scoring of a piece of discourse:
- Named logical fallacies via regex patterns
- Ethical-framework concerns (proportionality, discrimination, necessity, humanity)
- Sentiment and hostility signals
- Entropy score: 0-10 stability signal, 10 = constructive, 0 = polarizing
- Fallback argument strength / evidence level when reasoning is unavailable

Everything here is synchronous and side-effect free so it can always run,
even when the embedding and reasoning collaborators are down.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Pattern, Sequence

# Fallacy taxonomy (name -> case-insensitive pattern)
FALLACY_PATTERNS: Dict[str, Pattern[str]] = {
    "Ad Hominem": re.compile(r"attack.*person|insult.*character|personal attack", re.IGNORECASE),
    "Straw Man": re.compile(r"misrepresent|distort.*argument|what they really mean", re.IGNORECASE),
    "Appeal to Authority": re.compile(r"expert.*said|authority.*says|because.*famous", re.IGNORECASE),
    "False Dichotomy": re.compile(r"either.*or|only two options|must choose between", re.IGNORECASE),
    "Slippery Slope": re.compile(r"will lead to|if.*then.*then.*then|inevitable", re.IGNORECASE),
    "Appeal to Emotion": re.compile(r"think of the children|fear|outrage|won't somebody", re.IGNORECASE),
    "Hasty Generalization": re.compile(r"all.*are|everyone.*does|nobody.*can", re.IGNORECASE),
    "Circular Reasoning": re.compile(r"because it is|it's true because|self-evident", re.IGNORECASE),
}


@dataclass(frozen=True)
class EthicalCategory:
    label: str
    keywords: Sequence[str]
    qualifiers: Sequence[str]


# A category is flagged only when a keyword AND a qualifier both occur.
ETHICAL_CATEGORIES: Dict[str, EthicalCategory] = {
    "proportionality": EthicalCategory(
        label="Proportionality concern raised",
        keywords=("proportionate", "excessive", "balanced", "measured", "appropriate response"),
        qualifiers=("excessive", "disproportionate"),
    ),
    "discrimination": EthicalCategory(
        label="Discrimination principle relevant",
        keywords=("discriminate", "target", "civilian", "combatant", "innocent"),
        qualifiers=("civilian", "innocent"),
    ),
    "necessity": EthicalCategory(
        label="Necessity argument present",
        keywords=("necessary", "required", "unavoidable", "essential", "last resort"),
        qualifiers=("unavoidable", "last resort", "no other option", "no choice"),
    ),
    "humanity": EthicalCategory(
        label="Humanity/dignity concern raised",
        keywords=("humane", "dignity", "suffering", "cruel", "torture", "human rights"),
        qualifiers=("cruel", "torture", "suffering"),
    ),
}

CONSTRUCTIVE_KEYWORDS = (
    "solution", "propose", "suggest", "compromise", "agree", "understand",
    "perspective", "consider", "alternative", "dialogue", "cooperation",
)
DIVISIVE_KEYWORDS = (
    "enemy", "destroy", "hate", "never", "always wrong", "stupid",
    "idiot", "evil", "must be stopped", "threat",
)

POSITIVE_WORDS = ("good", "great", "excellent", "amazing", "positive", "support", "agree", "love")
NEGATIVE_WORDS = ("bad", "terrible", "awful", "negative", "hate", "disagree", "wrong", "fail")
HOSTILE_WORDS = ("stupid", "idiot", "hate", "kill", "destroy", "moron", "scum")

REASONING_MARKERS = ("because", "therefore", "since", "thus", "hence", "consequently")
EVIDENCE_MARKERS = (
    "study", "data", "according to", "research", "source",
    "percent", "%", "http", "statistics", "evidence",
)

DEFAULT_ARGUMENT_STRENGTH = 0.5
DEFAULT_EVIDENCE_LEVEL = 0.3
NEUTRAL_ENTROPY = 5.0


@dataclass
class TextSignals:
    sentiment: float = 0.0  # [-1, 1]
    hostility: float = 0.0  # [0, 1]


@dataclass
class HeuristicReport:
    fallacies: List[str] = field(default_factory=list)
    ethical_concerns: List[str] = field(default_factory=list)
    signals: TextSignals = field(default_factory=TextSignals)
    argument_strength: float = DEFAULT_ARGUMENT_STRENGTH
    evidence_level: float = DEFAULT_EVIDENCE_LEVEL
    entropy_score: float = NEUTRAL_ENTROPY


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def count_keywords(text: str, keywords: Sequence[str]) -> int:
    """Number of distinct keywords present as substrings (case-insensitive)."""
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def detect_fallacies(text: str) -> List[str]:
    return [name for name, pattern in FALLACY_PATTERNS.items() if pattern.search(text)]


def detect_ethical_concerns(text: str) -> List[str]:
    lowered = text.lower()
    concerns = []
    for category in ETHICAL_CATEGORIES.values():
        has_keyword = any(keyword in lowered for keyword in category.keywords)
        has_qualifier = any(qualifier in lowered for qualifier in category.qualifiers)
        if has_keyword and has_qualifier:
            concerns.append(category.label)
    return concerns


def _clean_text(text: str) -> str:
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[^\w\s.,!?-]", "", text)
    return text.strip()[:2000]


def estimate_sentiment(text: str) -> float:
    """+0.1 per positive word present, -0.1 per negative word, clamped to [-1, 1]."""
    score = 0.1 * count_keywords(text, POSITIVE_WORDS) - 0.1 * count_keywords(text, NEGATIVE_WORDS)
    return _clamp(score, -1.0, 1.0)


def assess_hostility(text: str) -> float:
    """+0.2 per hostile word, +0.1 for shouting (caps), +0.1 for 3+ exclamations."""
    if not text:
        return 0.0

    score = 0.2 * count_keywords(text, HOSTILE_WORDS)

    caps_ratio = sum(1 for char in text if "A" <= char <= "Z") / len(text)
    if caps_ratio > 0.3:
        score += 0.1

    if text.count("!") > 2:
        score += 0.1

    return _clamp(score, 0.0, 1.0)


def analyze_text_signals(text: str) -> TextSignals:
    cleaned = _clean_text(text)
    return TextSignals(sentiment=estimate_sentiment(cleaned), hostility=assess_hostility(cleaned))


def score_argument_strength(text: str, fallacies: Sequence[str]) -> float:
    """0.5 baseline, +0.1 per reasoning connective (max +0.3), -0.1 per fallacy."""
    bonus = min(0.3, 0.1 * count_keywords(text, REASONING_MARKERS))
    return _clamp(DEFAULT_ARGUMENT_STRENGTH + bonus - 0.1 * len(fallacies), 0.0, 1.0)


def score_evidence_level(text: str) -> float:
    """0.3 baseline, +0.15 per evidence marker."""
    return _clamp(DEFAULT_EVIDENCE_LEVEL + 0.15 * count_keywords(text, EVIDENCE_MARKERS), 0.0, 1.0)


def calculate_entropy_score(text: str, signals: TextSignals, ethical_concerns: Sequence[str]) -> float:
    score = NEUTRAL_ENTROPY

    score -= signals.hostility * 3

    if signals.sentiment < -0.3:
        score -= 1
    if signals.sentiment > 0.3:
        score += 0.5

    # Engaging with ethics reads as nuance, not conflict
    if ethical_concerns:
        score += 0.5

    score += 0.3 * count_keywords(text, CONSTRUCTIVE_KEYWORDS)
    score -= 0.5 * count_keywords(text, DIVISIVE_KEYWORDS)

    return _clamp(score, 0.0, 10.0)


def run_heuristics(text: str) -> HeuristicReport:
    fallacies = detect_fallacies(text)
    ethical_concerns = detect_ethical_concerns(text)
    signals = analyze_text_signals(text)

    return HeuristicReport(
        fallacies=fallacies,
        ethical_concerns=ethical_concerns,
        signals=signals,
        argument_strength=score_argument_strength(text, fallacies),
        evidence_level=score_evidence_level(text),
        entropy_score=calculate_entropy_score(text, signals, ethical_concerns),
    )


def generate_recommendation(
    entropy_score: float,
    logical_validity: float,
    evidence_quality: float,
    fallacies: Sequence[str],
    ethical_concerns: Sequence[str],
) -> str:
    recommendations = []

    if entropy_score < 3:
        recommendations.append("This argument may escalate conflict. Consider reframing constructively.")
    if logical_validity < 0.4:
        recommendations.append("The logical structure could be strengthened.")
    if evidence_quality < 0.3:
        recommendations.append("Consider adding supporting evidence or sources.")
    if fallacies:
        recommendations.append(f"Potential logical fallacies detected: {', '.join(fallacies)}.")
    if ethical_concerns:
        recommendations.append(f"Ethical considerations: {', '.join(ethical_concerns)}.")

    if not recommendations:
        recommendations.append("This argument appears well-reasoned and constructive.")

    return " ".join(recommendations)


def generate_heuristic_summary(
    entropy_score: float,
    fallacies: Sequence[str],
    ethical_concerns: Sequence[str],
) -> str:
    parts = []

    if entropy_score >= 7:
        parts.append("This argument promotes constructive dialogue.")
    elif entropy_score <= 3:
        parts.append("This argument may increase polarization.")

    if fallacies:
        parts.append(f"Contains potential {fallacies[0]} reasoning.")

    if ethical_concerns:
        parts.append(f"Raises {ethical_concerns[0].lower()}.")

    return " ".join(parts) or "Analysis complete."
