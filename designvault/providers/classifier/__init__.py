"""Asset classifier adapters."""

from designvault.providers.classifier.llm_asset_classifier import LLMAssetClassifier

__all__ = ["LLMAssetClassifier"]
