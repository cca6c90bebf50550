"""Static domain knowledge for pharmaceutical packaging extraction.

# ─── PURPOSE ───────────────────────────────────────────────────────────
#
# Curated, hand-coded vocabulary used by three consumers:
#
#   - the result validator (pharmaceutical terms, corporate suffixes)
#   - the response parser (batch / expiry / manufacturer label patterns)
#   - the orchestrator (dosage-form detection and OCR prompt building)
#
# All functions are **pure** (no side effects, no I/O, no external deps).
# Patterns are compiled once at module-load time.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import re


# ═════════════════════════════════════════════════════════════════════════
# 1. PRODUCT VOCABULARY
# ═════════════════════════════════════════════════════════════════════════
# Words that make a product name look pharmaceutical.  Matched
# case-insensitively at the start of a word, so plurals count too.

PHARMA_TERMS: tuple[str, ...] = (
    "tablet", "capsule", "syrup", "injection", "cream", "ointment",
    "paracetamol", "ibuprofen", "amoxicillin", "vitamin", "antibiotic",
)

# Strength units.  Only counted directly after a number ("500mg", "5 ml").
DOSAGE_UNITS: tuple[str, ...] = ("mg", "ml", "g", "mcg", "iu", "units")

_TERM_PATTERN = re.compile(
    r"(?<![a-z])(?:" + "|".join(PHARMA_TERMS) + r")"
    r"|\d\s*(?:" + "|".join(sorted(DOSAGE_UNITS, key=len, reverse=True)) + r")(?![a-z])",
    re.IGNORECASE,
)

# Keywords used to decide whether free text is about a medicine at all.
# Two or more hits mark the text as pharmaceutical.
PHARMA_CONTENT_KEYWORDS: tuple[str, ...] = (
    "tablet", "capsule", "injection", "vial", "syrup", "cream", "ointment",
    "batch", "lot", "expiry", "exp", "manufacture", "mfg", "nafdac",
    "pharmaceutical", "medicine", "drug", "medication", "prescription",
    "dosage", "strength", "mg", "ml", "iu", "mcg", "lotion", "gel",
    "suppository", "drops", "spray", "inhaler", "patch",
)

PHARMA_CONTENT_MIN_HITS = 2


# ═════════════════════════════════════════════════════════════════════════
# 2. MANUFACTURER SUFFIXES
# ═════════════════════════════════════════════════════════════════════════

CORPORATE_SUFFIX_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bLtd\.?\b", re.IGNORECASE),
    re.compile(r"\bPlc\b", re.IGNORECASE),
    re.compile(r"\bInc\.?\b", re.IGNORECASE),
    re.compile(r"\bPharma\b", re.IGNORECASE),
    re.compile(r"\bLaborator(?:y|ies)\b", re.IGNORECASE),
    re.compile(r"\bPharmaceuticals?\b", re.IGNORECASE),
    re.compile(r"\bMedical\b", re.IGNORECASE),
    re.compile(r"\bHealthcare\b", re.IGNORECASE),
)


# ═════════════════════════════════════════════════════════════════════════
# 3. LABEL PATTERNS FOR PLAIN OCR TEXT
# ═════════════════════════════════════════════════════════════════════════
# Used when a provider (typically the local engine) returns only text.
# The first capture group holds the value.

BATCH_LABEL_PATTERN = re.compile(
    r"\b(?:BATCH|LOT|B/N|BN)\b\s*(?:NO\.?|NUMBER|#)?\s*[:.]?\s*([A-Z0-9][A-Z0-9\-]{2,19})",
    re.IGNORECASE,
)

# Unlabelled batch-like tokens.  Candidates shorter than six characters or
# shaped like a bare year are discarded by the parser.
BATCH_CANDIDATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b([A-Z]{4,10}\d{4})\b"),          # ASCORBIC2023
    re.compile(r"\b([A-Z]{1,3}\d{4,8}[A-Z]?)\b"),   # T36184B
    re.compile(r"\b([A-Z]\d{5,6}[A-Z]?)\b"),
    re.compile(r"\b(\d{6,8})\b"),                   # 39090439
    re.compile(r"\b([A-Z]{2,3}\d{4,6})\b"),         # PCT2023002
    re.compile(r"\b([A-Z]{1,4}\d{4}[A-Z]{1,3})\b"),
)

BATCH_MIN_CANDIDATE_LENGTH = 6

EXPIRY_LABEL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?:EXP(?:IRY)?|BEST\s+BEFORE|USE\s+BY)\s*(?:DATE)?\s*[:.]?\s*"
        r"(\d{1,2}[/\-]\d{2,4}(?:[/\-]\d{2,4})?|\d{4}[/\-]\d{1,2}(?:[/\-]\d{1,2})?)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    re.compile(r"\b(\d{1,2}[/\-]\d{4})\b"),
)

MANUFACTURER_LABEL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?:MFG|MFD|MANUFACTURED\s+BY|MADE\s+BY|MARKETED\s+BY)\s*[:.]?\s*([A-Z][A-Za-z&.\s]{2,60}?)\s*(?:\n|$|,)",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b([A-Z][A-Za-z&.]*(?:[ \t]+[A-Z][A-Za-z&.]*){0,4}[ \t]+"
        r"(?:Ltd|Limited|PLC|Plc|Inc|Corp|GmbH|SA|NV|Pharma|Laboratories|Pharmaceuticals))\b",
    ),
)


# ═════════════════════════════════════════════════════════════════════════
# 4. DOSAGE-FORM DETECTION
# ═════════════════════════════════════════════════════════════════════════
# Ordered: the first form whose keyword appears wins, so broad words
# ("oral", "gel") sit behind the more specific forms that precede them.

PHARMA_FORM_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("tablets", ("tablet", "tab")),
    ("capsules", ("capsule", "cap", "softgel")),
    ("injectables", ("injection", "vial", "ampoule", "syringe")),
    ("syrups", ("syrup", "suspension", "solution", "oral")),
    ("creams", ("cream", "ointment", "gel", "lotion")),
    ("inhalers", ("inhaler", "aerosol", "mdi", "dpi")),
    ("patches", ("patch", "transdermal", "matrix")),
    ("drops", ("drop", "eye", "ear", "otic")),
    ("suppositories", ("suppository", "rectal", "vaginal")),
    ("sprays", ("spray", "nasal", "pump")),
)

DEFAULT_PHARMA_FORM = "general"


def contains_pharma_term(text: str) -> bool:
    """Return ``True`` when *text* names a medicine, a dosage form or a strength."""
    return _TERM_PATTERN.search(text) is not None


def detect_pharma_form(text: str) -> str:
    """Return the dosage form suggested by *text*, or ``"general"``."""
    lowered = text.lower()
    if re.search(r"\d+\s*mg\s*tablet", lowered):
        return "tablets"
    for form, keywords in PHARMA_FORM_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return form
    return DEFAULT_PHARMA_FORM


def is_pharmaceutical_content(text: str) -> bool:
    """Return ``True`` when *text* contains enough pharmaceutical vocabulary."""
    lowered = text.lower()
    hits = sum(1 for keyword in PHARMA_CONTENT_KEYWORDS if keyword in lowered)
    return hits >= PHARMA_CONTENT_MIN_HITS


# ═════════════════════════════════════════════════════════════════════════
# 5. OCR INSTRUCTION
# ═════════════════════════════════════════════════════════════════════════

DEFAULT_OCR_INSTRUCTION = (
    "Read the pharmaceutical packaging in the image. Return only a JSON object "
    'with the keys "productName", "batchNumber", "expiryDate", "manufacturer" '
    'and "confidence" (a number between 0 and 1). Use null for any field that '
    "is not visible. Copy batch numbers and dates exactly as printed."
)

_FORM_HINTS: dict[str, str] = {
    "tablets": "Blister packs often print the batch and expiry on the foil edge.",
    "capsules": "Check the bottle label and the carton flap for batch and expiry.",
    "injectables": "Vial and ampoule labels are small; read the lot number carefully.",
    "syrups": "Batch and expiry are usually embossed or printed near the bottle neck.",
    "creams": "Tube crimps often carry the batch and expiry.",
    "inhalers": "Check the canister and the plastic actuator for the lot number.",
    "patches": "Each sachet carries its own batch and expiry.",
    "drops": "Dropper bottles carry tiny labels; prefer the carton text when both exist.",
    "suppositories": "The strip or carton end flap carries the batch and expiry.",
    "sprays": "Check the base of the spray bottle for the lot number.",
}

_TIER_HINTS: dict[str, str] = {
    "business": "HIGH PRECISION MODE: pay extra attention to regulatory markings, exact batch formats and manufacturer codes.",
    "standard": "STANDARD ACCURACY MODE: focus on complete extraction with an honest confidence score.",
}


def build_ocr_prompt(form: str = DEFAULT_PHARMA_FORM, tier_id: str = "free", image_count: int = 1) -> str:
    """Build the extraction instruction for a dosage form, tier and image count."""
    parts = [DEFAULT_OCR_INSTRUCTION]
    if form in _FORM_HINTS:
        parts.append(_FORM_HINTS[form])
    if tier_id in _TIER_HINTS:
        parts.append(_TIER_HINTS[tier_id])
    if image_count > 1:
        parts.append(
            f"MULTI-IMAGE ANALYSIS: you have {image_count} images; cross-reference "
            "information across all of them."
        )
    return "\n\n".join(parts)
