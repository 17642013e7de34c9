"""Asset, site and permission models for the DesignVault repository.

All models use frozen config to enforce immutability; the stores return
fresh instances on every read and updates are expressed as store writes,
never as in-place mutation.

Architecture note:
    ``ProcessingStatus`` doubles as the classification state machine.  The
    allowed transitions live next to the enum so the pipeline and the
    operator-retry path validate against one table:

        PENDING ──begin──→ PROCESSING ──success──→ COMPLETED
                              │
                              └──failure / exception / timeout──→ FAILED
        FAILED ──operator retry──→ PENDING
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AssetCategory(str, Enum):  # noqa: UP042
    """Fixed asset categories used by uploads and the ``category:`` filter."""

    FURNITURE = "furniture"
    LIGHTING = "lighting"
    TEXTILES = "textiles"
    ACCESSORIES = "accessories"
    FINISHES = "finishes"

    @classmethod
    def parse(cls, value: str) -> AssetCategory | None:
        """Return the matching category (case-insensitive), or ``None`` if unrecognized."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class ProcessingStatus(str, Enum):  # noqa: UP042
    """Classification state of an asset."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: ProcessingStatus) -> bool:
        return target in _TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


# FAILED -> PENDING is reachable only through the operator retry.
_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.PROCESSING: frozenset(
        {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.PENDING}),
}


class UserRole(str, Enum):  # noqa: UP042
    ADMIN = "admin"
    EMPLOYEE = "employee"


class Principal(BaseModel):
    """An authenticated caller as seen by the directory store."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""
    name: str = ""
    role: UserRole = UserRole.EMPLOYEE
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Site(BaseModel):
    """A tenant container that owns assets."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    client_name: str = ""
    description: str | None = None
    is_active: bool = True


class PermissionGrant(BaseModel):
    """One (user, site) grant; at most one exists per pair."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    site_id: str
    can_view: bool = True
    can_upload: bool = False


class SitePermissions(BaseModel):
    """Effective rights of a principal on a single site."""

    model_config = ConfigDict(frozen=True)

    can_view: bool = False
    can_upload: bool = False


class Asset(BaseModel):
    """A stored file record plus its classification metadata.

    ``relevance_score`` is only populated on Tier-2 and Tier-3 search hits;
    it is never persisted.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    display_name: str
    storage_key: str
    mime_type: str
    size_bytes: int = Field(ge=0)
    category: AssetCategory
    site_id: str
    uploaded_by: str
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    ai_description: str | None = None
    ai_tags: list[str] | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    relevance_score: float | None = None
