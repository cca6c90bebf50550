"""Plausibility scoring for extracted packaging fields.

Each field is checked independently and scored in [0, 1]:

    batch number   -- length, charset, known batch shapes, test markers
    product name   -- length, pharmaceutical vocabulary, capitalisation
    expiry date    -- one of the accepted date shapes, plausible year
    manufacturer   -- length, corporate suffixes, capitalisation

The composite is a weighted average over the fields that scored above
zero (batch 0.4, product 0.3, expiry 0.15, manufacturer 0.15).  A result is
valid only when the composite reaches 0.5 *and* the batch check passes:
the batch number is what downstream verification keys on, so nothing
without one is ever reported as valid.
"""

from __future__ import annotations

import re
from datetime import date

from pharmaroute.config.domain_knowledge import CORPORATE_SUFFIX_PATTERNS, contains_pharma_term
from pharmaroute.models.extraction import ExtractedFields
from pharmaroute.models.validation import (
    ConfidenceInterpretation,
    FieldValidation,
    ValidationDetail,
    ValidationResult,
)
from pharmaroute.utils.confidence import calculate_confidence, interpret_confidence
from pharmaroute.utils.logging import get_logger

# Composite weights, in ValidationDetail field order.
FIELD_WEIGHTS: dict[str, float] = {
    "batch_number": 0.4,
    "product_name": 0.3,
    "expiry_date": 0.15,
    "manufacturer": 0.15,
}

VALIDITY_THRESHOLD = 0.5

_BATCH_CHARSET = re.compile(r"^[A-Z0-9\-_ ]+$")
_BATCH_SHAPES: tuple[re.Pattern[str], ...] = (
    re.compile(r"^[A-Z]+\d+[A-Z]*$"),   # letters + digits (+ letters)
    re.compile(r"^\d+[A-Z]+$"),         # digits + letters
    re.compile(r"^[A-Z]+\d+$"),         # letters + digits
    re.compile(r"^\d+$"),               # digits only
)
_BATCH_TEST_MARKERS = ("TEST", "SAMPLE")

_EXPIRY_SHAPES: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}$"),      # MM/DD/YYYY or MM/DD/YY
    re.compile(r"^\d{1,2}-\d{1,2}-\d{2,4}$"),      # MM-DD-YYYY
    re.compile(r"^\d{2,4}/\d{1,2}/\d{1,2}$"),      # YYYY/MM/DD
    re.compile(r"^\d{2,4}-\d{1,2}-\d{1,2}$"),      # YYYY-MM-DD
    re.compile(r"^EXP\s*\d{1,2}/\d{2,4}$", re.IGNORECASE),  # EXP MM/YYYY
    re.compile(r"^EXP\s*\d{2,4}$", re.IGNORECASE),          # EXP YYYY
    re.compile(r"^\d{1,2}/\d{4}$"),                # MM/YYYY
    re.compile(r"^\d{1,2}-\d{4}$"),                # MM-YYYY
)
_FOUR_DIGIT_YEAR = re.compile(r"\b(\d{4})\b")
_NUMERIC_GROUP = re.compile(r"\d+")


class ResultValidator:
    """Scores candidate extractions and gates them on the batch number.

    Stateless apart from an optional ``today`` override used to pin the
    expiry year window in tests.
    """

    def __init__(self, today: date | None = None) -> None:
        self._today = today
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, fields: ExtractedFields, raw_text: str = "") -> ValidationResult:
        """Score every field of *fields* and combine them.

        Parameters
        ----------
        fields:
            The normalized extraction to check.
        raw_text:
            Source text, when available.  Only used for logging context;
            scoring relies on the extracted values alone.

        Returns
        -------
        ValidationResult
            Per-field verdicts, the composite confidence and the validity
            flag.  Never raises on missing fields.
        """
        details = ValidationDetail(
            batch_number=self.validate_batch_number(fields.batch_number),
            product_name=self.validate_product_name(fields.product_name),
            expiry_date=self.validate_expiry_date(fields.expiry_date),
            manufacturer=self.validate_manufacturer(fields.manufacturer),
        )

        scored = [
            (getattr(details, name).confidence, weight)
            for name, weight in FIELD_WEIGHTS.items()
            if getattr(details, name).confidence > 0
        ]
        if scored:
            composite = calculate_confidence([s for s, _ in scored], [w for _, w in scored])
        else:
            composite = 0.0

        issues: list[str] = []
        suggestions: list[str] = []
        for name in FIELD_WEIGHTS:
            check: FieldValidation = getattr(details, name)
            issues.extend(check.issues)
            suggestions.extend(check.suggestions)

        is_valid = composite >= VALIDITY_THRESHOLD and details.batch_number.is_valid

        self._logger.debug(
            "extraction_validated",
            composite_confidence=round(composite, 4),
            is_valid=is_valid,
            batch_valid=details.batch_number.is_valid,
            raw_text_length=len(raw_text),
        )
        return ValidationResult(
            details=details,
            composite_confidence=composite,
            is_valid=is_valid,
            issues=issues,
            suggestions=suggestions,
        )

    def interpret(self, score: float) -> ConfidenceInterpretation:
        """Describe *score* for display next to a result."""
        return interpret_confidence(score)

    # ------------------------------------------------------------------
    # Field checks
    # ------------------------------------------------------------------

    def validate_batch_number(self, value: str | None) -> FieldValidation:
        if not value:
            return FieldValidation(issues=["Batch number not found"])

        issues: list[str] = []
        suggestions: list[str] = []
        batch = value.strip().upper()

        if 3 <= len(batch) <= 15:
            confidence = 0.6
        else:
            confidence = 0.2
            issues.append("Batch number length is unusual")

        if not _BATCH_CHARSET.match(batch):
            confidence *= 0.5
            issues.append("Batch number contains unexpected characters")
            suggestions.append("Batch numbers usually contain only letters, digits and dashes")

        compact = re.sub(r"[\-_ ]", "", batch)
        if any(shape.match(compact) for shape in _BATCH_SHAPES):
            confidence = min(1.0, confidence + 0.3)

        if any(marker in batch for marker in _BATCH_TEST_MARKERS):
            confidence *= 0.7
            issues.append("Batch number looks like a test or sample value")

        return FieldValidation(
            is_valid=confidence >= 0.6,
            confidence=confidence,
            issues=issues,
            suggestions=suggestions,
        )

    def validate_product_name(self, value: str | None) -> FieldValidation:
        if not value:
            return FieldValidation(issues=["Product name not found"])

        issues: list[str] = []
        name = value.strip()

        if 2 <= len(name) <= 100:
            confidence = 0.5
        else:
            confidence = 0.1
            issues.append("Product name length is unusual")

        if contains_pharma_term(name):
            confidence = min(1.0, confidence + 0.4)

        if name[:1].islower():
            confidence *= 0.9
        if name[:1].isdigit():
            confidence *= 0.8
            issues.append("Product name starts with a digit")

        return FieldValidation(is_valid=confidence >= 0.4, confidence=confidence, issues=issues)

    def validate_expiry_date(self, value: str | None) -> FieldValidation:
        if not value:
            return FieldValidation(issues=["Expiry date not found"])

        expiry = value.strip()
        issues: list[str] = []
        suggestions: list[str] = []

        if any(shape.match(expiry) for shape in _EXPIRY_SHAPES):
            confidence = 0.7
            is_valid = True
        else:
            confidence = 0.3
            is_valid = False
            issues.append("Expiry date format not recognised")
            suggestions.append("Expected formats: MM/YYYY, MM/DD/YYYY or YYYY-MM-DD")

        year = _expiry_year(expiry)
        current_year = (self._today or date.today()).year
        if year is not None and not current_year - 1 <= year <= current_year + 10:
            confidence *= 0.8
            issues.append("Expiry year is outside the expected range")

        return FieldValidation(
            is_valid=is_valid,
            confidence=confidence,
            issues=issues,
            suggestions=suggestions,
        )

    def validate_manufacturer(self, value: str | None) -> FieldValidation:
        if not value:
            return FieldValidation(issues=["Manufacturer not found"])

        issues: list[str] = []
        name = value.strip()

        if 2 <= len(name) <= 100:
            confidence = 0.5
        else:
            confidence = 0.2
            issues.append("Manufacturer name length is unusual")

        if any(pattern.search(name) for pattern in CORPORATE_SUFFIX_PATTERNS):
            confidence = min(1.0, confidence + 0.3)

        if name[:1].islower():
            confidence *= 0.9

        return FieldValidation(is_valid=confidence >= 0.4, confidence=confidence, issues=issues)


def _expiry_year(expiry: str) -> int | None:
    """Return the year of *expiry*: a four-digit group, else the last number."""
    four_digit = _FOUR_DIGIT_YEAR.search(expiry)
    if four_digit:
        return int(four_digit.group(1))
    groups = _NUMERIC_GROUP.findall(expiry)
    if not groups:
        return None
    year = int(groups[-1])
    return year + 2000 if year < 100 else year
