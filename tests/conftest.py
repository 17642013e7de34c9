"""Shared pytest fixtures for the DesignVault test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import structlog

from designvault.config.settings import Settings
from designvault.interfaces.classifier import IClassifier
from designvault.interfaces.llm_provider import ILLMProvider
from designvault.interfaces.semantic_ranker import ISemanticRanker
from designvault.models.asset import (
    Asset,
    AssetCategory,
    PermissionGrant,
    Principal,
    ProcessingStatus,
    Site,
    UserRole,
)
from designvault.models.classification import ClassificationResult
from designvault.providers.store.sqlite_asset_store import SQLiteAssetStore
from designvault.providers.store.sqlite_directory_store import SQLiteDirectoryStore
from designvault.providers.store.sqlite_search_log_store import SQLiteSearchLogStore
from designvault.utils.logging import configure_logging

BASE_TIME = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Directory seed data
# ---------------------------------------------------------------------------
#
#   user-admin   admin, no grants needed
#   user-alice   view + upload on site-north, view on site-closed (inactive)
#   user-bob     view only on site-south
#   user-carol   inactive, view on site-north
#   user-dave    active, no grants

SEED_USERS = [
    Principal(id="user-admin", email="admin@studio.test", name="Ada Admin", role=UserRole.ADMIN),
    Principal(id="user-alice", email="alice@studio.test", name="Alice"),
    Principal(id="user-bob", email="bob@studio.test", name="Bob"),
    Principal(id="user-carol", email="carol@studio.test", name="Carol", is_active=False),
    Principal(id="user-dave", email="dave@studio.test", name="Dave"),
]

SEED_SITES = [
    Site(id="site-north", name="North Loft", client_name="Acme Interiors"),
    Site(id="site-south", name="South Villa", client_name="Birch & Co"),
    Site(id="site-closed", name="Closed Studio", client_name="Old Client", is_active=False),
]

SEED_GRANTS = [
    PermissionGrant(user_id="user-alice", site_id="site-north", can_view=True, can_upload=True),
    PermissionGrant(user_id="user-alice", site_id="site-closed", can_view=True, can_upload=False),
    PermissionGrant(user_id="user-bob", site_id="site-south", can_view=True, can_upload=False),
    PermissionGrant(user_id="user-carol", site_id="site-north", can_view=True, can_upload=False),
]


async def seed_directory(directory: SQLiteDirectoryStore) -> None:
    for user in SEED_USERS:
        await directory.add_principal(user)
    for site in SEED_SITES:
        await directory.add_site(site)
    for grant in SEED_GRANTS:
        await directory.upsert_grant(grant)


def make_asset(
    asset_id: str = "asset-001",
    *,
    site_id: str = "site-north",
    filename: str = "sofa_modern.jpg",
    display_name: str | None = None,
    mime_type: str = "image/jpeg",
    category: AssetCategory = AssetCategory.FURNITURE,
    status: ProcessingStatus = ProcessingStatus.COMPLETED,
    description: str | None = None,
    tags: list[str] | None = None,
    minutes: int = 0,
    size_bytes: int = 2048,
    uploaded_by: str = "user-alice",
) -> Asset:
    """Build an asset; ``minutes`` offsets ``created_at`` from a fixed base time."""
    created = BASE_TIME + timedelta(minutes=minutes)
    return Asset(
        id=asset_id,
        filename=filename,
        display_name=display_name or filename,
        storage_key=f"sites/{site_id}/{category.value}/2026/01/15/{asset_id}_{filename}",
        mime_type=mime_type,
        size_bytes=size_bytes,
        category=category,
        site_id=site_id,
        uploaded_by=uploaded_by,
        processing_status=status,
        ai_description=description,
        ai_tags=tags,
        created_at=created,
        updated_at=created,
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _quiet_uncached_logging() -> None:
    """Warnings only, and no logger caching: capsys swaps sys.stdout per test."""
    configure_logging(log_level="WARNING")
    structlog.configure(cache_logger_on_first_use=False)


# ---------------------------------------------------------------------------
# Settings and stores
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "designvault.db"


@pytest.fixture
def test_settings(tmp_path: Path, db_path: Path) -> Settings:
    """Settings pointing every path into ``tmp_path``, with no LLM keys."""
    return Settings(
        _env_file=None,
        database_backend="sqlite",
        sqlite_db_path=str(db_path),
        sqlite_fts_enabled=True,
        blob_root=str(tmp_path / "blobs"),
        config_path=str(tmp_path / "missing-config.yaml"),
        anthropic_api_key="",
        openai_api_key="",
        openai_base_url="",
        openai_text_model="",
        openai_vision_model="",
        ollama_base_url="http://localhost:11434",
        app_env="test",
        log_level="WARNING",
    )


@pytest.fixture
def asset_factory() -> Callable[..., Asset]:
    """Return :func:`make_asset` so tests can build assets with overrides."""
    return make_asset


@pytest_asyncio.fixture
async def directory_store(db_path: Path) -> SQLiteDirectoryStore:
    """Initialized directory store seeded with the users, sites and grants above."""
    store = SQLiteDirectoryStore(db_path=db_path)
    await store.initialize()
    await seed_directory(store)
    return store


@pytest_asyncio.fixture
async def asset_store(db_path: Path) -> SQLiteAssetStore:
    store = SQLiteAssetStore(db_path=db_path, fts_enabled=True)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def substring_asset_store(tmp_path: Path) -> SQLiteAssetStore:
    """Asset store with FTS5 disabled, so Tier-2 uses substring matching."""
    store = SQLiteAssetStore(db_path=tmp_path / "substring.db", fts_enabled=False)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def search_log_store(db_path: Path) -> SQLiteSearchLogStore:
    store = SQLiteSearchLogStore(db_path=db_path)
    await store.initialize()
    return store


# ---------------------------------------------------------------------------
# Mock collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def classification_result() -> ClassificationResult:
    return ClassificationResult(
        description="Modern grey sectional sofa.",
        tags=["sofa", "grey", "sectional", "modern"],
        confidence=0.92,
        room_type="living room",
        colors=["grey"],
        materials=["fabric"],
        objects=["sofa"],
    )


@pytest.fixture
def mock_classifier(classification_result: ClassificationResult) -> IClassifier:
    """Mock IClassifier that answers every asset with ``classification_result``.

    Override with ``mock_classifier.classify.return_value = ...`` or
    ``mock_classifier.classify.side_effect = ...`` for specific tests.
    """
    mock = MagicMock(spec=IClassifier)
    mock.get_provider_name.return_value = "mock-classifier"
    mock.is_available.return_value = True
    mock.classify = AsyncMock(return_value=classification_result)
    return mock


@pytest.fixture
def mock_ranker() -> ISemanticRanker:
    """Mock ISemanticRanker that finds nothing by default."""
    mock = MagicMock(spec=ISemanticRanker)
    mock.get_provider_name.return_value = "mock-ranker"
    mock.rank = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider with vision support.

    Override ``complete`` / ``vision_extract`` return values or side effects
    per test.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.supports_vision.return_value = True
    mock.complete = AsyncMock(return_value="[]")
    mock.vision_extract = AsyncMock(return_value='{"description": "ok"}')
    return mock


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """A minimal merged configuration dictionary."""
    return {
        "app": {"name": "designvault", "version": "0.1.0"},
        "search": {
            "fulltext_threshold": 10,
            "semantic_threshold": 5,
            "semantic_candidate_cap": 1000,
            "semantic_min_score": 0.3,
        },
        "classification": {"timeout_seconds": 60.0, "max_concurrency": 5},
        "telemetry": {"queue_size": 1000},
        "upload": {"max_bytes": 104857600},
    }
