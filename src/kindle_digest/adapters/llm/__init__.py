"""LLM adapters."""

from kindle_digest.adapters.llm.claude_client import ClaudeClient
from kindle_digest.adapters.llm.strategies import LLMRanker, LLMSummarizer

__all__ = ["ClaudeClient", "LLMRanker", "LLMSummarizer"]
