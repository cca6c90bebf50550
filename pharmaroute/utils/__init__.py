"""Utility modules for pharmaroute.

- **confidence** -- Weighted scoring math, level interpretation and
  strategy-adjusted confidence.
- **errors** -- Domain-specific exception hierarchy rooted at
  PharmaRouteError.
- **error_classifier** -- Pure quota/billing failure classification.
- **image_preprocessor** -- PIL/OpenCV variations used by preprocessing
  retries.
- **concurrency** -- Background task dispatch for non-blocking recording.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Confidence scoring utilities ------------------------------------------
from pharmaroute.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    confidence_to_level,
    interpret_confidence,
    strategy_adjusted_confidence,
)

# -- Async concurrency helpers ---------------------------------------------
from pharmaroute.utils.concurrency import BackgroundDispatcher

# -- Failure classification ------------------------------------------------
from pharmaroute.utils.error_classifier import classify_error, classify_exception

# -- Domain exception hierarchy --------------------------------------------
from pharmaroute.utils.errors import (
    AssignmentStoreError,
    ConfigurationError,
    CredentialError,
    PharmaRouteError,
    PreprocessingError,
    ProviderError,
    ProviderUnavailableError,
    QuotaBillingError,
    RateLimitError,
    RecordingError,
)

# -- Image preprocessing for OCR retries -----------------------------------
from pharmaroute.utils.image_preprocessor import ImagePreprocessor

# -- Structured logging setup ----------------------------------------------
from pharmaroute.utils.logging import configure_logging, get_logger

__all__ = [
    "AssignmentStoreError",
    "BackgroundDispatcher",
    "ConfidenceLevel",
    "ConfigurationError",
    "CredentialError",
    "ImagePreprocessor",
    "PharmaRouteError",
    "PreprocessingError",
    "ProviderError",
    "ProviderUnavailableError",
    "QuotaBillingError",
    "RateLimitError",
    "RecordingError",
    "calculate_confidence",
    "classify_error",
    "classify_exception",
    "configure_logging",
    "confidence_to_level",
    "get_logger",
    "interpret_confidence",
    "strategy_adjusted_confidence",
]
