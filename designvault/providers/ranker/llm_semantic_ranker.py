"""LLM-backed bulk semantic ranker.

One completion call scores the query against every candidate description
at once.  The model answers with a JSON array of ``{"index", "score"}``
objects; anything else is an :class:`InferenceError`.  An unconfigured
provider is reported as :class:`ProviderUnavailableError` without a call.
"""

from __future__ import annotations

import json
import re

from designvault.interfaces.llm_provider import ILLMProvider
from designvault.interfaces.semantic_ranker import ISemanticRanker, RankedIndex
from designvault.utils.errors import DesignVaultError, InferenceError, ProviderUnavailableError
from designvault.utils.logging import get_logger

_SYSTEM_PROMPT = (
    "You score how relevant short asset descriptions are to a search query "
    "for an interior design asset library. You respond with JSON only."
)

_USER_PROMPT_TEMPLATE = """\
Search query: "{query}"

Rate how relevant each description below is to the search query on a scale
of 0.0 to 1.0. Return a JSON array of objects with "index" (0-based) and
"score". Only include items scoring {min_score} or higher.

Descriptions:
{descriptions}

Response format: [{{"index": 0, "score": 0.85}}, {{"index": 2, "score": 0.67}}]"""

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


class LLMSemanticRanker(ISemanticRanker):
    """Semantic ranker that asks an :class:`ILLMProvider` to score candidates."""

    def __init__(self, llm_provider: ILLMProvider, min_score: float = 0.3) -> None:
        self._llm = llm_provider
        self._min_score = min_score
        self._logger = get_logger(__name__)

    async def rank(self, query: str, descriptions: list[str]) -> list[RankedIndex]:
        if not descriptions:
            return []
        if not self._llm.is_available():
            raise ProviderUnavailableError(
                message=f"LLM provider {self._llm.get_provider_name()} is not configured",
                provider_name=self.get_provider_name(),
            )

        listing = "\n".join(
            f"{i}: {' '.join(desc.split())}" for i, desc in enumerate(descriptions)
        )
        user_prompt = _USER_PROMPT_TEMPLATE.format(
            query=query.replace('"', "'"),
            min_score=self._min_score,
            descriptions=listing,
        )

        try:
            response = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=0.0,
                max_tokens=4000,
            )
        except DesignVaultError as exc:
            raise InferenceError(
                message=f"Semantic ranking call failed: {exc.message}",
                provider_name=self.get_provider_name(),
            ) from exc

        ranked = self._parse_response(response)
        self._logger.debug(
            "semantic_ranking_complete",
            candidates=len(descriptions),
            matches=len(ranked),
        )
        return ranked

    def get_provider_name(self) -> str:
        return f"llm_ranker:{self._llm.get_provider_name()}"

    def _parse_response(self, response: str) -> list[RankedIndex]:
        text = response.strip()
        fence_match = _JSON_FENCE_RE.search(text)
        if fence_match:
            text = fence_match.group(1).strip()
        if not text.startswith("["):
            start = text.find("[")
            end = text.rfind("]")
            if start != -1 and end > start:
                text = text[start : end + 1]

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InferenceError(
                message=f"Semantic ranking response is not JSON: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not isinstance(parsed, list):
            raise InferenceError(
                message="Semantic ranking response is not a JSON array",
                provider_name=self.get_provider_name(),
            )

        ranked: list[RankedIndex] = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            index = item.get("index")
            score = item.get("score")
            # bool is an int subclass
            if not isinstance(index, int) or isinstance(index, bool):
                continue
            if not isinstance(score, (int, float)) or isinstance(score, bool):
                continue
            ranked.append(RankedIndex(index=index, score=float(score)))
        return ranked
