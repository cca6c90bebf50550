"""Remote LLM provider adapters.

Three implementations of IProviderAdapter (pharmaroute/interfaces/provider_adapter.py):
    - GeminiAdapter    -- Google Gemini (text + vision), provider id ``google``
    - OpenAIAdapter    -- gpt-4o-mini / gpt-4o, provider id ``openai``
    - AnthropicAdapter -- Claude (text + vision), provider id ``anthropic``

main.py registers every adapter by provider id; the resolver decides which
of them a tier actually uses.
"""

from pharmaroute.providers.llm.anthropic_provider import AnthropicAdapter
from pharmaroute.providers.llm.gemini_provider import GeminiAdapter
from pharmaroute.providers.llm.openai_provider import OpenAIAdapter

__all__ = ["AnthropicAdapter", "GeminiAdapter", "OpenAIAdapter"]
