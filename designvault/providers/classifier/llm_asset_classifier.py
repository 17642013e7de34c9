"""LLM-backed asset classifier.

Images are sent to a vision-capable LLM with an interior-design prompt and
the JSON answer is cleaned into a :class:`ClassificationResult`.  PDFs and
CAD drawings get a heuristic analysis built from the filename and MIME
type; the model is not consulted for them.  Every other MIME type is
rejected as ``UNSUPPORTED_FORMAT``.

Provider errors never escape :meth:`LLMAssetClassifier.classify`: they are
mapped onto typed :class:`ClassificationFailure` values so the pipeline can
record them on the asset.
"""

from __future__ import annotations

import json
import re
from typing import Any

from designvault.interfaces.classifier import IClassifier
from designvault.interfaces.llm_provider import ILLMProvider
from designvault.models.classification import (
    ClassificationFailure,
    ClassificationOutcome,
    ClassificationResult,
    FailureCode,
)
from designvault.utils.errors import RateLimitError
from designvault.utils.logging import get_logger
from designvault.utils.mime_types import is_cad, is_document, is_image

_ANALYSIS_PROMPT = """\
You are an interior design analyst cataloguing assets for a design studio's
digital asset library. Describe this image so designers can find it later.

Respond with ONLY a JSON object of this shape:
{
  "description": "2-3 sentences describing what the image shows",
  "tags": ["searchable", "keywords"],
  "roomType": "living room|bedroom|kitchen|bathroom|dining room|office|hallway|outdoor|other",
  "styleElements": ["modern", "traditional", "minimalist", "industrial"],
  "colors": ["dominant", "palette", "colors"],
  "materials": ["wood", "metal", "fabric", "stone"],
  "objects": ["sofa", "pendant lamp", "rug"],
  "confidence": 0.95
}

Concentrate on furniture and fixtures, colour schemes, materials, room
layout, and the style vocabulary designers actually search with."""

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_DESIGN_TERMS = frozenset(
    {
        "modern", "contemporary", "traditional", "rustic", "industrial",
        "minimalist", "vintage", "classic", "luxury", "bohemian",
        "living", "bedroom", "kitchen", "bathroom", "dining",
        "furniture", "lighting", "decor", "textile", "accessory",
        "chair", "table", "sofa", "lamp", "cabinet", "shelf",
    }
)  # fmt: skip

_MAX_TAGS = 20
_MAX_STYLE_ELEMENTS = 10
_MAX_COLORS = 10
_MAX_MATERIALS = 10
_MAX_OBJECTS = 15
_MAX_FILENAME_KEYWORDS = 5
_DEFAULT_CONFIDENCE = 0.8
_FALLBACK_CONFIDENCE = 0.3
_DOCUMENT_CONFIDENCE = 0.7


def extract_filename_keywords(filename: str) -> list[str]:
    """Up to five searchable words from *filename*.

    The extension is dropped, ``_`` and ``-`` become spaces, and remaining
    punctuation is removed.  Words of three or more characters are kept
    when they are design vocabulary or at least four characters long.
    """
    stem = re.sub(r"\.[^/.]+$", "", filename.lower())
    stem = re.sub(r"[_-]", " ", stem)
    stem = re.sub(r"[^a-z0-9\s]", "", stem)
    words = [w for w in stem.split() if len(w) > 2]
    return [w for w in words if w in _DESIGN_TERMS or len(w) >= 4][:_MAX_FILENAME_KEYWORDS]


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _string_list(value: Any, cap: int) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)][:cap]


class LLMAssetClassifier(IClassifier):
    """Classifier that delegates image understanding to an :class:`ILLMProvider`."""

    def __init__(self, llm_provider: ILLMProvider) -> None:
        self._llm = llm_provider
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IClassifier interface
    # ------------------------------------------------------------------

    async def classify(
        self,
        asset_id: str,
        raw_bytes: bytes,
        mime_type: str,
        filename: str,
    ) -> ClassificationOutcome:
        if is_document(mime_type):
            return self._analyze_document(filename, mime_type)
        if not is_image(mime_type):
            self._logger.info("classification_unsupported_format", asset_id=asset_id, mime_type=mime_type)
            return ClassificationFailure(
                code=FailureCode.UNSUPPORTED_FORMAT,
                message=f"Unsupported file type: {mime_type}",
                retryable=False,
            )
        return await self._analyze_image(asset_id, raw_bytes, mime_type, filename)

    def get_provider_name(self) -> str:
        return f"llm_classifier:{self._llm.get_provider_name()}"

    def is_available(self) -> bool:
        return self._llm.is_available() and self._llm.supports_vision()

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def _analyze_image(
        self,
        asset_id: str,
        raw_bytes: bytes,
        mime_type: str,
        filename: str,
    ) -> ClassificationOutcome:
        try:
            response = await self._llm.vision_extract(
                image_bytes=raw_bytes,
                prompt=_ANALYSIS_PROMPT,
                media_type=mime_type,
            )
        except Exception as exc:
            failure = self._map_error(exc)
            self._logger.warning(
                "classification_llm_error",
                asset_id=asset_id,
                code=failure.code.value,
                error=str(exc),
            )
            return failure

        try:
            parsed = self._parse_llm_response(response)
        except (json.JSONDecodeError, ValueError) as exc:
            self._logger.warning(
                "classification_unparseable_response",
                asset_id=asset_id,
                error=str(exc),
                preview=response[:200],
            )
            return self._fallback_analysis(filename)

        return self._clean_result(parsed, filename)

    @staticmethod
    def _parse_llm_response(response: str) -> dict[str, Any]:
        """Extract a JSON object from *response*, tolerating fences and preamble.

        Raises
        ------
        json.JSONDecodeError
            If no valid JSON can be extracted.
        ValueError
            If the JSON is not an object.
        """
        text = response.strip()
        fence_match = _JSON_FENCE_RE.search(text)
        if fence_match:
            text = fence_match.group(1).strip()

        if not text.startswith("{"):
            brace_start = text.find("{")
            brace_end = text.rfind("}")
            if brace_start != -1 and brace_end > brace_start:
                text = text[brace_start : brace_end + 1]

        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError("LLM response is not a JSON object")
        return parsed

    @staticmethod
    def _clean_result(parsed: dict[str, Any], filename: str) -> ClassificationResult:
        confidence = parsed.get("confidence")
        if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
            confidence = max(0.0, min(1.0, float(confidence)))
        else:
            confidence = _DEFAULT_CONFIDENCE

        description = parsed.get("description")
        if not isinstance(description, str) or not description.strip():
            description = "Interior design asset"

        room_type = parsed.get("roomType")
        tags = _string_list(parsed.get("tags"), _MAX_TAGS)

        return ClassificationResult(
            description=description,
            tags=_dedupe(tags + extract_filename_keywords(filename)),
            confidence=confidence,
            room_type=room_type if isinstance(room_type, str) and room_type else None,
            style_elements=_string_list(parsed.get("styleElements"), _MAX_STYLE_ELEMENTS),
            colors=_string_list(parsed.get("colors"), _MAX_COLORS),
            materials=_string_list(parsed.get("materials"), _MAX_MATERIALS),
            objects=_string_list(parsed.get("objects"), _MAX_OBJECTS),
        )

    @staticmethod
    def _fallback_analysis(filename: str) -> ClassificationResult:
        keywords = extract_filename_keywords(filename)
        return ClassificationResult(
            description=f"Interior design asset: {filename}",
            tags=keywords or ["interior", "design", "asset"],
            confidence=_FALLBACK_CONFIDENCE,
        )

    @staticmethod
    def _map_error(exc: Exception) -> ClassificationFailure:
        message = str(exc).lower()
        if isinstance(exc, RateLimitError) or "quota" in message or "rate limit" in message:
            return ClassificationFailure(
                code=FailureCode.QUOTA_EXCEEDED,
                message="AI service quota exceeded",
                retryable=True,
            )
        if "invalid image" in message or "unsupported" in message:
            return ClassificationFailure(
                code=FailureCode.INVALID_IMAGE,
                message="Invalid or unsupported image format",
                retryable=False,
            )
        return ClassificationFailure(
            code=FailureCode.API_ERROR,
            message="AI analysis service temporarily unavailable",
            retryable=True,
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @staticmethod
    def _analyze_document(filename: str, mime_type: str) -> ClassificationResult:
        if is_cad(mime_type):
            document_type = "CAD drawing"
            extra_tags = ["cad", "drawing", "technical", "blueprint"]
        else:
            document_type = "PDF document"
            extra_tags = ["pdf", "document", "specification"]

        return ClassificationResult(
            description=f"{document_type}: {filename}",
            tags=_dedupe(extract_filename_keywords(filename) + extra_tags),
            confidence=_DOCUMENT_CONFIDENCE,
        )
