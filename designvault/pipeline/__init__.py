"""Classification pipeline (asset status state machine)."""

from designvault.pipeline.classification_pipeline import ClassificationPipeline

__all__ = ["ClassificationPipeline"]
