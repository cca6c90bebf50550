"""Normalizes loosely-typed provider payloads into :class:`ExtractedFields`.

Vendors answer in several shapes:

    1. a structured ``extracted_data`` mapping from the adapter
    2. a JSON object embedded somewhere in the response text
       (often inside a markdown code fence)
    3. plain OCR text with no structure at all

Keys may be camelCase or snake_case, singular or plural, and values may be
strings, numbers or lists.  :func:`parse_provider_response` is the single
place that copes with all of that; every caller downstream works with
``ExtractedFields`` and never inspects raw payloads.

Confidence is the provider-reported value when one is present.  Otherwise
it is the heuristic parse score: 0.3 base, +0.2 batch, +0.15 expiry,
+0.1 product, +0.1 manufacturer.
"""

from __future__ import annotations

import json
import math
import re
from datetime import date
from typing import Any

from pharmaroute.config.domain_knowledge import (
    BATCH_CANDIDATE_PATTERNS,
    BATCH_LABEL_PATTERN,
    BATCH_MIN_CANDIDATE_LENGTH,
    EXPIRY_LABEL_PATTERNS,
    MANUFACTURER_LABEL_PATTERNS,
    contains_pharma_term,
)
from pharmaroute.models.extraction import ExtractedFields, ProviderResponse

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "product_name": (
        "productName", "product_name", "productNames", "product_names",
        "product", "name", "brandName", "brand_name",
    ),
    "batch_number": (
        "batchNumber", "batch_number", "batchNumbers", "batch_numbers",
        "batch", "lotNumber", "lot_number", "lot",
    ),
    "expiry_date": (
        "expiryDate", "expiry_date", "expiryDates", "expiry_dates",
        "expirationDate", "expiration_date", "expiry", "exp",
    ),
    "manufacturer": (
        "manufacturer", "manufacturers", "manufacturerName", "manufacturer_name",
        "mfg", "company",
    ),
}

_NULL_TOKENS = frozenset({"null", "none", "n/a", "na", "unknown", "not visible", "not found", "-"})

_HEURISTIC_BASE = 0.3
_HEURISTIC_WEIGHTS: dict[str, float] = {
    "batch_number": 0.2,
    "expiry_date": 0.15,
    "product_name": 0.1,
    "manufacturer": 0.1,
}

_LABEL_WORDS = re.compile(r"\b(?:BATCH|LOT|EXP|EXPIRY|MFG|MFD|MANUFACTURED|MADE BY|USE BY|BEST BEFORE)\b", re.IGNORECASE)
_PURE_YEAR = re.compile(r"^\d{4}$")


def parse_provider_response(response: ProviderResponse) -> ExtractedFields:
    """Turn one provider response into normalized fields."""
    raw_text = response.content or ""
    payload = response.extracted_data if response.extracted_data else extract_json_object(raw_text)

    if payload and _has_known_key(payload):
        values = {field: _pick(payload, aliases) for field, aliases in _FIELD_ALIASES.items()}
        reported = _coerce_confidence(payload.get("confidence"))
        confidence = reported if reported is not None else heuristic_confidence(values)
        return ExtractedFields(raw_text=raw_text, confidence=confidence, **values)

    return parse_plain_text(raw_text)


def parse_plain_text(text: str) -> ExtractedFields:
    """Recover fields from unstructured OCR text with label heuristics."""
    values: dict[str, str | None] = {
        "batch_number": find_batch_number(text),
        "expiry_date": find_expiry_date(text),
        "manufacturer": find_manufacturer(text),
    }
    values["product_name"] = find_product_name(text, exclude=values.values())
    return ExtractedFields(raw_text=text, confidence=heuristic_confidence(values), **values)


def heuristic_confidence(values: dict[str, str | None]) -> float:
    score = _HEURISTIC_BASE
    for field, weight in _HEURISTIC_WEIGHTS.items():
        value = values.get(field)
        if value is not None and str(value).strip():
            score += weight
    return min(1.0, score)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the outermost JSON object embedded in *text*, if it parses."""
    if not text:
        return None
    match = _JSON_OBJECT.search(text)
    if match is None:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


# ---------------------------------------------------------------------------
# Plain-text field finders
# ---------------------------------------------------------------------------

def find_batch_number(text: str) -> str | None:
    labelled = BATCH_LABEL_PATTERN.search(text)
    if labelled:
        return labelled.group(1).strip().upper()

    candidates: set[str] = set()
    for pattern in BATCH_CANDIDATE_PATTERNS:
        for match in pattern.finditer(text):
            token = match.group(1).strip().upper()
            if len(token) >= BATCH_MIN_CANDIDATE_LENGTH and not _PURE_YEAR.match(token):
                candidates.add(token)
    if not candidates:
        return None
    # More letters first (digits-only tokens are often dates), then longer.
    return sorted(candidates, key=lambda c: (-sum(ch.isalpha() for ch in c), -len(c), c))[0]


def find_expiry_date(text: str) -> str | None:
    for pattern in EXPIRY_LABEL_PATTERNS:
        for match in pattern.finditer(text):
            candidate = match.group(1).strip()
            if _plausible_expiry(candidate):
                return candidate
    return None


def find_manufacturer(text: str) -> str | None:
    for pattern in MANUFACTURER_LABEL_PATTERNS:
        match = pattern.search(text)
        if match:
            name = " ".join(match.group(1).split()).strip(" .,")
            if len(name) >= 2:
                return name
    return None


def find_product_name(text: str, exclude: Any = ()) -> str | None:
    """Pick the most product-like line: pharma vocabulary first, then length."""
    excluded = {value.lower() for value in exclude if value}
    candidates: list[str] = []
    for line in text.splitlines():
        phrase = " ".join(line.split())
        if not _looks_like_product_name(phrase):
            continue
        if phrase.lower() in excluded or _LABEL_WORDS.search(phrase):
            continue
        if any(pattern.search(phrase) for pattern in BATCH_CANDIDATE_PATTERNS) and len(phrase.split()) == 1:
            continue
        candidates.append(phrase)
    if not candidates:
        return None

    def _rank(phrase: str) -> tuple[int, int]:
        return (0 if contains_pharma_term(phrase) else 1, -len(phrase))

    return sorted(candidates, key=_rank)[0]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _has_known_key(payload: dict[str, Any]) -> bool:
    if "confidence" in payload:
        return True
    return any(alias in payload for aliases in _FIELD_ALIASES.values() for alias in aliases)


def _pick(payload: dict[str, Any], aliases: tuple[str, ...]) -> str | None:
    for alias in aliases:
        if alias in payload:
            value = _first_scalar(payload[alias])
            if value is not None:
                return value
    return None


def _first_scalar(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (list, tuple)):
        for item in value:
            scalar = _first_scalar(item)
            if scalar is not None:
                return scalar
        return None
    if isinstance(value, dict):
        return _first_scalar(value.get("value"))
    text = str(value).strip()
    if not text or text.lower() in _NULL_TOKENS:
        return None
    return text


def _coerce_confidence(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip().rstrip("%"))
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    # Some models answer on a 0-100 scale.
    if number > 1.0:
        number /= 100.0
    return max(0.0, min(1.0, number))


def _looks_like_product_name(phrase: str) -> bool:
    if len(phrase) < 3 or len(phrase) > 50:
        return False
    if not re.search(r"[A-Za-z]", phrase):
        return False
    digits = sum(ch.isdigit() for ch in phrase)
    if digits / len(phrase) > 0.5:
        return False
    words = phrase.split()
    has_title = any(re.fullmatch(r"[A-Z][a-z]+", word) for word in words)
    has_caps = any(re.fullmatch(r"[A-Z]{2,}", word) for word in words)
    return has_title or has_caps or len(words) > 1


def _plausible_expiry(candidate: str) -> bool:
    parts = [p for p in re.split(r"[/\-]", candidate) if p]
    if not parts or not all(p.isdigit() for p in parts):
        return False
    current_year = date.today().year
    if len(parts) == 2:
        if len(parts[0]) == 4:
            parts = [parts[1], parts[0]]
        month, year = int(parts[0]), int(parts[1])
        if year < 100:
            year += 2000
        return 1 <= month <= 12 and current_year - 6 <= year <= current_year + 15
    if len(parts) == 3:
        year_part = parts[0] if len(parts[0]) == 4 else parts[2]
        year = int(year_part)
        if year < 100:
            year += 2000
        return current_year - 6 <= year <= current_year + 15
    return False
