"""Abstract base class for bulk semantic rankers used by the Tier-3 search."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RankedIndex:
    """A candidate position and its similarity score in [0, 1]."""

    index: int
    score: float


# Concrete implementation: LLMSemanticRanker (designvault/providers/ranker/)
class ISemanticRanker(ABC):
    """Contract for scoring a query against a batch of asset descriptions."""

    @abstractmethod
    async def rank(self, query: str, descriptions: list[str]) -> list[RankedIndex]:
        """Score *query* against every entry of *descriptions*.

        Parameters
        ----------
        query:
            The raw search text.
        descriptions:
            Candidate descriptions; the returned ``index`` values refer to
            positions in this list.

        Returns
        -------
        list[RankedIndex]
            Matches in any order.  Callers apply their own score cutoff and
            ignore out-of-range indices.

        Raises
        ------
        designvault.utils.errors.InferenceError
            If the inference call fails or its response cannot be parsed.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this ranker."""
