"""Document-understanding adapters."""

from ...config import LLMConfig, LLMProvider
from ...ports.understanding import UnderstandingPort
from .claude_api import ClaudeAPIAdapter
from .ollama import OllamaAdapter
from .openai_api import OpenAIAdapter

__all__ = ["ClaudeAPIAdapter", "OllamaAdapter", "OpenAIAdapter", "create_understanding_adapter"]


def create_understanding_adapter(config: LLMConfig) -> UnderstandingPort:
    """Create the document-understanding adapter selected in configuration."""
    if config.provider == LLMProvider.OPENAI:
        return OpenAIAdapter(
            model=config.model,
            base_url=config.base_url,
            api_key=config.api_key,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )
    elif config.provider == LLMProvider.OLLAMA:
        return OllamaAdapter(model=config.model, base_url=config.base_url, timeout=config.timeout)
    elif config.provider == LLMProvider.CLAUDE_API:
        return ClaudeAPIAdapter(
            model=config.model,
            api_key=config.api_key,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )
    else:
        raise ValueError(f"Unknown LLM provider: {config.provider}")
