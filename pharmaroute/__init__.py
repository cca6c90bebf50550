"""pharmaroute: tiered provider routing and OCR fallback for pharmaceutical packaging."""

__version__ = "0.1.0"
