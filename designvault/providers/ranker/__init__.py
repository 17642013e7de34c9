"""Semantic ranker adapters for the Tier-3 search."""

from designvault.providers.ranker.llm_semantic_ranker import LLMSemanticRanker

__all__ = ["LLMSemanticRanker"]
