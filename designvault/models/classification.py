"""Classification collaborator result models.

A classifier answers with exactly one of two shapes: a structured
:class:`ClassificationResult` or a typed :class:`ClassificationFailure`.
Transport-level exceptions are converted into failures by the pipeline,
so the asset's status field is the only place a failure becomes visible.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field


class FailureCode(str, Enum):  # noqa: UP042
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    API_ERROR = "API_ERROR"
    INVALID_IMAGE = "INVALID_IMAGE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"


class ClassificationResult(BaseModel):
    """Description, tags and design attributes extracted from one asset."""

    model_config = ConfigDict(frozen=True)

    description: str
    tags: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    room_type: str | None = None
    style_elements: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    materials: list[str] = Field(default_factory=list)
    objects: list[str] = Field(default_factory=list)


class ClassificationFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: FailureCode
    message: str = ""
    retryable: bool = False


ClassificationOutcome = Union[ClassificationResult, ClassificationFailure]
