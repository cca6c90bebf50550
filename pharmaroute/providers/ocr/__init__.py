"""Local OCR adapters.

TesseractAdapter is the last entry of every tier's provider list: free,
offline, and always tried once the remote vendors are exhausted.
"""

from pharmaroute.providers.ocr.tesseract_provider import TesseractAdapter

__all__ = ["TesseractAdapter"]
