"""Unit tests for confidence scoring utilities."""

from __future__ import annotations

import pytest

from pharmaroute.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    confidence_to_level,
    interpret_confidence,
    strategy_adjusted_confidence,
)


# ======================================================================
# calculate_confidence
# ======================================================================


class TestCalculateConfidence:
    """Tests for the calculate_confidence function."""

    def test_equal_weights(self) -> None:
        result = calculate_confidence([0.8, 0.6, 0.4])
        assert result == pytest.approx(0.6, abs=1e-9)

    def test_custom_weights(self) -> None:
        result = calculate_confidence([1.0, 0.0], weights=[3.0, 1.0])
        assert result == pytest.approx(0.75, abs=1e-9)

    def test_field_weights_renormalise_over_present_fields(self) -> None:
        # batch 0.9 @ 0.4 and expiry 0.7 @ 0.15 only
        result = calculate_confidence([0.9, 0.7], weights=[0.4, 0.15])
        assert result == pytest.approx((0.36 + 0.105) / 0.55, abs=1e-9)

    def test_empty_list_raises(self) -> None:
        with pytest.raises(ValueError, match="scores must not be empty"):
            calculate_confidence([])

    def test_mismatched_lengths_raises(self) -> None:
        with pytest.raises(ValueError, match="same length"):
            calculate_confidence([0.5, 0.5], weights=[1.0])

    def test_all_zero_weights_returns_zero(self) -> None:
        assert calculate_confidence([0.8, 0.6], weights=[0.0, 0.0]) == 0.0


# ======================================================================
# confidence_to_level / interpret_confidence
# ======================================================================


class TestConfidenceToLevel:
    @pytest.mark.parametrize(
        ("score", "level"),
        [
            (0.95, ConfidenceLevel.VERY_HIGH),
            (0.9, ConfidenceLevel.VERY_HIGH),
            (0.85, ConfidenceLevel.HIGH),
            (0.8, ConfidenceLevel.HIGH),
            (0.6, ConfidenceLevel.MEDIUM),
            (0.3, ConfidenceLevel.LOW),
            (0.29, ConfidenceLevel.VERY_LOW),
            (0.0, ConfidenceLevel.VERY_LOW),
        ],
    )
    def test_boundaries(self, score: float, level: ConfidenceLevel) -> None:
        assert confidence_to_level(score) == level


class TestInterpretConfidence:
    def test_very_low_recommends_manual_entry(self) -> None:
        reading = interpret_confidence(0.1)
        assert reading.level == "Very Low"
        assert "manually" in reading.recommendation

    def test_high_proceeds(self) -> None:
        reading = interpret_confidence(0.85)
        assert reading.level == "High"
        assert reading.recommendation == "Proceed with verification"


# ======================================================================
# strategy_adjusted_confidence
# ======================================================================


class TestStrategyAdjustedConfidence:
    def test_anthropic_primary_first_attempt_unchanged(self) -> None:
        assert strategy_adjusted_confidence(0.8, "anthropic") == pytest.approx(0.8)

    def test_provider_multiplier(self) -> None:
        assert strategy_adjusted_confidence(0.8, "tesseract") == pytest.approx(0.56)

    def test_unknown_provider_uses_default_multiplier(self) -> None:
        assert strategy_adjusted_confidence(0.5, "mystery") == pytest.approx(0.4)

    def test_attempt_penalty_floors_at_point_eight(self) -> None:
        third = strategy_adjusted_confidence(0.8, "google", attempt_count=3)
        tenth = strategy_adjusted_confidence(0.8, "google", attempt_count=10)
        assert third == pytest.approx(0.8 * 0.95 * 0.8)
        assert tenth == pytest.approx(third)

    def test_preprocessing_retry_multiplier_and_bonus(self) -> None:
        result = strategy_adjusted_confidence(0.8, "google", "preprocessing-retry:abc12345")
        assert result == pytest.approx(0.8 * 0.85 * 1.1)

    def test_clamped_to_one(self) -> None:
        assert strategy_adjusted_confidence(1.0, "anthropic", "preprocessing-retry:x") <= 1.0
