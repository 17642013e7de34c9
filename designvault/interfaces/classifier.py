"""Abstract base class for asset classifiers.

A classifier turns raw asset bytes into a description, tags and design
attributes.  Production classifiers call an external inference service;
tests substitute deterministic doubles through this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from designvault.models.classification import ClassificationOutcome


# Concrete implementation: LLMAssetClassifier (designvault/providers/classifier/)
class IClassifier(ABC):
    """Contract for classification collaborators."""

    @abstractmethod
    async def classify(
        self,
        asset_id: str,
        raw_bytes: bytes,
        mime_type: str,
        filename: str,
    ) -> ClassificationOutcome:
        """Classify one asset.

        Parameters
        ----------
        asset_id:
            Id of the asset being classified (for logging only).
        raw_bytes:
            The stored file contents.
        mime_type:
            MIME type declared at upload.
        filename:
            Original filename; keywords from it may be merged into tags.

        Returns
        -------
        ClassificationResult | ClassificationFailure
            A structured result, or a typed failure carrying a code and a
            ``retryable`` flag.  Implementations may still raise on
            unexpected errors; the pipeline treats any exception as a failure.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this classifier."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backing inference service is configured."""
