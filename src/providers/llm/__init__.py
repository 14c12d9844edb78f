"""Vision LLM provider adapters.

Two implementations of ILLMProvider (src/interfaces/llm_provider.py), used
only to describe uploaded images:
    - OpenAILLMProvider    -- gpt-4o-mini (or any OpenAI-compatible vision model)
    - AnthropicLLMProvider -- Claude

main.py picks the first one with a configured API key; with neither,
images are ingested under a placeholder description.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
