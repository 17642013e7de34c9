"""Immutable tuning options handed to services at construction time.

Each model mirrors one section of ``config/config.yaml``.  Defaults match
the values the search and classification paths were designed around, so a
missing YAML file still yields a working service.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EscalationPolicy(BaseModel):
    """Thresholds that decide when the search escalates to the next tier."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    fulltext_threshold: int = Field(default=10, ge=0)
    semantic_threshold: int = Field(default=5, ge=0)
    semantic_candidate_cap: int = Field(default=1000, ge=1)
    semantic_min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    semantic_timeout_seconds: float = Field(default=30.0, gt=0.0)
    lexical_max_results: int = Field(default=50, ge=1)

    @model_validator(mode="after")
    def _semantic_not_above_fulltext(self) -> EscalationPolicy:
        # Tier-3 runs on whatever survived Tier-2, so its trigger can't be looser.
        if self.semantic_threshold > self.fulltext_threshold:
            raise ValueError("semantic_threshold must not exceed fulltext_threshold")
        return self


class ClassificationOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    timeout_seconds: float = Field(default=60.0, gt=0.0)
    max_concurrency: int = Field(default=5, ge=1)


class TelemetryOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    queue_size: int = Field(default=1000, ge=1)


class UploadOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    max_bytes: int = Field(default=100 * 1024 * 1024, ge=1)
