"""Unit tests for the result validator."""

from __future__ import annotations

from datetime import date

import pytest

from pharmaroute.models.extraction import ExtractedFields
from pharmaroute.services.result_validator import ResultValidator


@pytest.fixture
def validator() -> ResultValidator:
    return ResultValidator(today=date(2026, 3, 1))


def _fields(**overrides) -> ExtractedFields:
    defaults = {
        "product_name": "Paracetamol 500mg Tablets",
        "batch_number": "T36184B",
        "expiry_date": "12/2027",
        "manufacturer": "Emzor Pharmaceutical Industries Ltd",
        "confidence": 0.9,
    }
    defaults.update(overrides)
    return ExtractedFields(**defaults)


# ======================================================================
# Composite verdict
# ======================================================================


class TestValidate:
    def test_complete_extraction_is_valid(self, validator: ResultValidator) -> None:
        result = validator.validate(_fields())
        # 0.9*0.4 + 0.9*0.3 + 0.7*0.15 + 0.8*0.15
        assert result.composite_confidence == pytest.approx(0.855)
        assert result.is_valid is True
        assert result.issues == []

    def test_missing_batch_is_never_valid(self, validator: ResultValidator) -> None:
        result = validator.validate(_fields(batch_number=None))
        assert result.composite_confidence >= 0.5
        assert result.is_valid is False
        assert "Batch number not found" in result.issues

    def test_invalid_batch_is_never_valid(self, validator: ResultValidator) -> None:
        result = validator.validate(_fields(batch_number="ab#"))
        assert result.details.batch_number.is_valid is False
        assert result.is_valid is False

    def test_missing_fields_do_not_dilute_composite(self, validator: ResultValidator) -> None:
        result = validator.validate(_fields(product_name=None, manufacturer=None, expiry_date=None))
        assert result.composite_confidence == pytest.approx(0.9)
        assert result.is_valid is True

    def test_empty_extraction(self, validator: ResultValidator) -> None:
        result = validator.validate(ExtractedFields())
        assert result.composite_confidence == 0.0
        assert result.is_valid is False
        assert len(result.issues) == 4

    def test_better_batch_never_lowers_composite(self, validator: ResultValidator) -> None:
        weak = validator.validate(_fields(batch_number="AB-12-CD-34-EF-56-GH"))
        strong = validator.validate(_fields(batch_number="T36184B"))
        assert strong.composite_confidence >= weak.composite_confidence

    def test_interpret(self, validator: ResultValidator) -> None:
        assert validator.interpret(0.95).level == "Very High"


# ======================================================================
# Batch number
# ======================================================================


class TestBatchNumber:
    @pytest.mark.parametrize("batch", ["T36184B", "39090439", "PCT2023002", "2023AB", "LOT-5521"])
    def test_known_shapes(self, validator: ResultValidator, batch: str) -> None:
        check = validator.validate_batch_number(batch)
        assert check.is_valid is True
        assert check.confidence == pytest.approx(0.9)

    def test_lowercase_is_normalised(self, validator: ResultValidator) -> None:
        assert validator.validate_batch_number("t36184b").is_valid is True

    def test_unusual_length(self, validator: ResultValidator) -> None:
        check = validator.validate_batch_number("A1")
        assert check.confidence == pytest.approx(0.5)
        assert check.is_valid is False
        assert "Batch number length is unusual" in check.issues

    def test_unexpected_characters(self, validator: ResultValidator) -> None:
        check = validator.validate_batch_number("AB#12")
        assert check.confidence == pytest.approx(0.3)
        assert check.suggestions

    def test_test_marker_penalised(self, validator: ResultValidator) -> None:
        check = validator.validate_batch_number("TEST123")
        assert check.confidence == pytest.approx(0.63)
        assert any("test or sample" in issue for issue in check.issues)


# ======================================================================
# Product name
# ======================================================================


class TestProductName:
    def test_pharma_vocabulary_boost(self, validator: ResultValidator) -> None:
        assert validator.validate_product_name("Amoxicillin").confidence == pytest.approx(0.9)

    def test_strength_counts_as_vocabulary(self, validator: ResultValidator) -> None:
        assert validator.validate_product_name("Panadol 500mg").confidence == pytest.approx(0.9)

    def test_plain_name(self, validator: ResultValidator) -> None:
        check = validator.validate_product_name("Panadol")
        assert check.confidence == pytest.approx(0.5)
        assert check.is_valid is True

    def test_lowercase_start(self, validator: ResultValidator) -> None:
        assert validator.validate_product_name("panadol").confidence == pytest.approx(0.45)

    def test_digit_start(self, validator: ResultValidator) -> None:
        check = validator.validate_product_name("7up")
        assert check.confidence == pytest.approx(0.4)
        assert "Product name starts with a digit" in check.issues


# ======================================================================
# Expiry date
# ======================================================================


class TestExpiryDate:
    @pytest.mark.parametrize(
        "expiry",
        [
            "12/2027",
            "6-2028",
            "12/31/2027",
            "12-31-2027",
            "2027/12/31",
            "2027-12-31",
            "EXP 12/2027",
            "EXP2027",
            "EXP 12/27",
            "1/5/2027",
            "12/31/27",
            "2027-1-5",
            "EXP 27",
        ],
    )
    def test_accepted_shapes(self, validator: ResultValidator, expiry: str) -> None:
        check = validator.validate_expiry_date(expiry)
        assert check.is_valid is True
        assert check.confidence == pytest.approx(0.7)

    def test_unrecognised_shape(self, validator: ResultValidator) -> None:
        check = validator.validate_expiry_date("Dec 27")
        assert check.is_valid is False
        assert check.confidence == pytest.approx(0.3)
        assert check.suggestions

    def test_far_future_year_penalised(self, validator: ResultValidator) -> None:
        check = validator.validate_expiry_date("12/2040")
        assert check.is_valid is True
        assert check.confidence == pytest.approx(0.56)

    def test_long_expired_year_penalised(self, validator: ResultValidator) -> None:
        assert validator.validate_expiry_date("2020-01-31").confidence == pytest.approx(0.56)


# ======================================================================
# Manufacturer
# ======================================================================


class TestManufacturer:
    def test_corporate_suffix(self, validator: ResultValidator) -> None:
        assert validator.validate_manufacturer("Fidson Healthcare Plc").confidence == pytest.approx(0.8)

    def test_plain_name(self, validator: ResultValidator) -> None:
        assert validator.validate_manufacturer("Emzor").confidence == pytest.approx(0.5)

    def test_lowercase_start(self, validator: ResultValidator) -> None:
        check = validator.validate_manufacturer("emzor")
        assert check.confidence == pytest.approx(0.45)
        assert check.is_valid is True
