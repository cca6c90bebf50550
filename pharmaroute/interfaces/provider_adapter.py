"""Abstract base class for inference provider adapters.

Defines the contract every vendor integration (Google Gemini, OpenAI,
Anthropic, the local Tesseract engine) implements.  The routing core only
ever talks to this interface: it never imports a vendor SDK, never sees a
vendor exception type, and never branches on which vendor answered.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pharmaroute.models.assignment import ProviderConfig
from pharmaroute.models.extraction import ExtractionRequest, ProviderResponse


class IProviderAdapter(ABC):
    """Contract for a single inference vendor.

    Implementations raise :class:`~pharmaroute.utils.errors.ProviderError`
    (or a subclass) on failure, or return a :class:`ProviderResponse` with
    ``success=False``.  Both are treated as a failed attempt by the invoker.
    """

    @abstractmethod
    async def process_text(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        """Run a text-only request (verification, classification, extraction).

        Parameters
        ----------
        request:
            The extraction request; images, if any, are ignored.
        config:
            Resolved model configuration for this call.  ``None`` means the
            adapter's own defaults.

        Returns
        -------
        ProviderResponse
            Normalized response with usage and timing metadata.
        """

    @abstractmethod
    async def process_vision(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        """Run an image request (OCR of packaging photos).

        Parameters
        ----------
        request:
            The extraction request; must carry at least one image.
        config:
            Resolved model configuration for this call.

        Returns
        -------
        ProviderResponse
            Normalized response with usage and timing metadata.
        """

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if :meth:`process_vision` is implemented for real."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the provider id used in assignments (e.g. ``"google"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the adapter can be called right now.

        Remote adapters check for a configured credential; the local engine
        checks that its binary is installed.
        """
