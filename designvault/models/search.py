"""Search request, result and audit models.

``SearchRequest`` is the validated caller input; constraint violations are
raised by pydantic before any tier runs.  ``AssetFilter`` is the
backend-agnostic predicate every tier hands to the asset store, so the
accessible-site scope travels with every query the store sees.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from designvault.models.asset import Asset, AssetCategory
from designvault.utils.timestamps import as_utc


class SearchTier(str, Enum):  # noqa: UP042
    """Which tier produced a search response."""

    STRUCTURED = "structured"
    FULLTEXT = "fulltext"
    SEMANTIC = "semantic"
    NONE = "none"


class SortField(str, Enum):  # noqa: UP042
    RELEVANCE = "relevance"
    CREATED_AT = "created_at"
    NAME = "name"
    SIZE = "size"


class SortOrder(str, Enum):  # noqa: UP042
    ASC = "asc"
    DESC = "desc"


class SearchRequest(BaseModel):
    """Validated search input."""

    model_config = ConfigDict(frozen=True)

    query: str = Field(min_length=1)
    site_ids: list[str] | None = None
    categories: list[AssetCategory] | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    mime_types: list[str] | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must contain at least one non-whitespace character")
        return value

    @model_validator(mode="after")
    def _date_range_ordered(self) -> SearchRequest:
        if self.date_from and self.date_to and as_utc(self.date_from) > as_utc(self.date_to):
            raise ValueError("date_from must not be after date_to")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def filter_snapshot(self) -> dict[str, Any]:
        """The filter portion of the request as recorded in telemetry."""
        return {
            "site_ids": self.site_ids,
            "categories": [c.value for c in self.categories] if self.categories else None,
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
            "mime_types": self.mime_types,
        }


class ParsedQuery(BaseModel):
    """Free-text terms and ``key:value`` filters split out of a raw query."""

    model_config = ConfigDict(frozen=True)

    terms: list[str] = Field(default_factory=list)
    filters: dict[str, str] = Field(default_factory=dict)

    @property
    def has_terms(self) -> bool:
        return bool(self.terms)

    @property
    def joined_terms(self) -> str:
        return " ".join(self.terms)


class AssetFilter(BaseModel):
    """Backend-agnostic asset predicate.

    ``site_ids`` is always present and never empty: callers with no
    accessible sites are answered before a filter is ever built.
    """

    model_config = ConfigDict(frozen=True)

    site_ids: list[str] = Field(min_length=1)
    categories: list[AssetCategory] | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    mime_types: list[str] | None = None
    mime_type_contains: str | None = None
    site_id_contains: str | None = None


class AssetPage(BaseModel):
    """One tier's answer: the requested page plus the full match count."""

    model_config = ConfigDict(frozen=True)

    assets: list[Asset] = Field(default_factory=list)
    total: int = 0


class SearchResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    assets: list[Asset] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    elapsed_ms: float = 0.0
    tier: SearchTier = SearchTier.NONE


class SearchQueryRecord(BaseModel):
    """Append-only audit record of one search invocation."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    query: str
    filters: dict[str, Any] = Field(default_factory=dict)
    result_count: int = 0
    latency_ms: float = 0.0
    tier: SearchTier = SearchTier.NONE
    created_at: datetime


class PopularQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    count: int
    avg_latency_ms: float


class SearchStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_searches: int = 0
    avg_latency_ms: float = 0.0
    avg_result_count: float = 0.0


class SearchAnalytics(BaseModel):
    """Audit read view for one user."""

    model_config = ConfigDict(frozen=True)

    recent: list[SearchQueryRecord] = Field(default_factory=list)
    popular: list[PopularQuery] = Field(default_factory=list)
    stats: SearchStats = Field(default_factory=SearchStats)


class SuggestionSource(BaseModel):
    """Asset fields the suggestion service mines for candidate terms."""

    model_config = ConfigDict(frozen=True)

    filename: str
    display_name: str
    ai_tags: list[str] | None = None
