"""Confidence scoring utilities for extracted packaging fields.

The engine assigns numeric confidence scores (0.0--1.0) at several points:
the provider's own score, the result validator's per-field scores, and the
composite score across fields.  This module provides the shared math:

1. **calculate_confidence** -- Weighted average of multiple score signals.
   The validator uses it for the composite score over the fields that were
   actually found.
2. **confidence_to_level** / **interpret_confidence** -- Map a numeric score
   to a level with a user-facing description and recommendation.
3. **strategy_adjusted_confidence** -- Scale a score by how trustworthy the
   strategy that produced it tends to be.
"""

from enum import Enum

from pharmaroute.models.validation import ConfidenceInterpretation


class ConfidenceLevel(Enum):
    """Human-readable confidence tiers shown next to extracted results."""

    VERY_LOW = "very_low"    # < 0.3
    LOW = "low"              # 0.3 - 0.6
    MEDIUM = "medium"        # 0.6 - 0.8
    HIGH = "high"            # 0.8 - 0.9
    VERY_HIGH = "very_high"  # >= 0.9


_INTERPRETATIONS: dict[ConfidenceLevel, tuple[str, str, str]] = {
    ConfidenceLevel.VERY_HIGH: (
        "Very High",
        "Extraction is highly reliable",
        "Proceed with verification",
    ),
    ConfidenceLevel.HIGH: (
        "High",
        "Extraction is reliable",
        "Proceed with verification",
    ),
    ConfidenceLevel.MEDIUM: (
        "Medium",
        "Extraction may contain minor errors",
        "Review extracted information before verification",
    ),
    ConfidenceLevel.LOW: (
        "Low",
        "Extraction likely contains errors",
        "Manually verify or correct the extracted information",
    ),
    ConfidenceLevel.VERY_LOW: (
        "Very Low",
        "Extraction is unreliable",
        "Enter product information manually",
    ),
}

# Relative trust in each provider's self-reported confidence.
PROVIDER_CONFIDENCE_MULTIPLIERS: dict[str, float] = {
    "anthropic": 1.0,
    "google": 0.95,
    "openai": 0.9,
    "tesseract": 0.7,
}
PREPROCESSING_RETRY_MULTIPLIER = 0.85
DEFAULT_CONFIDENCE_MULTIPLIER = 0.8
PREPROCESSING_BONUS = 1.1
MIN_ATTEMPT_PENALTY = 0.8


def calculate_confidence(
    scores: list[float],
    weights: list[float] | None = None,
) -> float:
    """Compute a weighted average confidence score.

    Args:
        scores: Individual confidence scores, each in [0.0, 1.0].
        weights: Optional weights for each score. Defaults to equal weighting.

    Returns:
        Weighted average clamped to [0.0, 1.0].

    Raises:
        ValueError: If scores is empty or lengths of scores and weights differ.
    """
    if not scores:
        raise ValueError("scores must not be empty")

    if weights is None:
        weights = [1.0] * len(scores)

    if len(scores) != len(weights):
        raise ValueError("scores and weights must have the same length")

    total_weight = sum(weights)
    if total_weight == 0:
        return 0.0

    weighted_sum = sum(s * w for s, w in zip(scores, weights, strict=True))
    return max(0.0, min(1.0, weighted_sum / total_weight))


def confidence_to_level(score: float) -> ConfidenceLevel:
    """Map a numeric confidence score to a human-readable level."""
    if score >= 0.9:
        return ConfidenceLevel.VERY_HIGH
    if score >= 0.8:
        return ConfidenceLevel.HIGH
    if score >= 0.6:
        return ConfidenceLevel.MEDIUM
    if score >= 0.3:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.VERY_LOW


def interpret_confidence(score: float) -> ConfidenceInterpretation:
    """Describe *score* with a level, a description and a recommendation."""
    label, description, recommendation = _INTERPRETATIONS[confidence_to_level(score)]
    return ConfidenceInterpretation(
        level=label,
        description=description,
        recommendation=recommendation,
    )


def strategy_adjusted_confidence(
    confidence: float,
    provider_id: str,
    strategy: str = "primary",
    attempt_count: int = 1,
) -> float:
    """Scale *confidence* by the reliability of the strategy that produced it.

    Preprocessing retries use their own multiplier plus a small bonus for
    the cleaned-up image; every attempt after the first costs 10%, floored
    at 0.8.
    """
    preprocessing_used = strategy.startswith("preprocessing-retry")
    if preprocessing_used:
        multiplier = PREPROCESSING_RETRY_MULTIPLIER
    else:
        multiplier = PROVIDER_CONFIDENCE_MULTIPLIERS.get(provider_id, DEFAULT_CONFIDENCE_MULTIPLIER)

    adjusted = confidence * multiplier
    if preprocessing_used:
        adjusted *= PREPROCESSING_BONUS

    attempt_penalty = max(MIN_ATTEMPT_PENALTY, 1.0 - (max(attempt_count, 1) - 1) * 0.1)
    adjusted *= attempt_penalty
    return max(0.0, min(1.0, adjusted))
