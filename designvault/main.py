"""DesignVault FastAPI application entry point.

Wires together all providers, services, and routes via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``
and configures structured logging.  The store family is chosen once here
from ``Settings.database_backend``; nothing below this module reads the
environment.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from designvault.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from designvault.api.routes import router as api_router
from designvault.config.loader import (
    build_classification_options,
    build_escalation_policy,
    build_telemetry_options,
    build_upload_options,
    load_config,
)
from designvault.config.settings import Settings
from designvault.interfaces.asset_store import IAssetStore
from designvault.interfaces.classifier import IClassifier
from designvault.interfaces.directory_store import IDirectoryStore
from designvault.interfaces.llm_provider import ILLMProvider
from designvault.interfaces.search_log_store import ISearchLogStore
from designvault.interfaces.semantic_ranker import ISemanticRanker
from designvault.pipeline.classification_pipeline import ClassificationPipeline
from designvault.providers.blob.local_blob_store import LocalBlobStore
from designvault.providers.classifier.llm_asset_classifier import LLMAssetClassifier
from designvault.providers.llm.anthropic_provider import AnthropicLLMProvider
from designvault.providers.llm.ollama_provider import OllamaLLMProvider
from designvault.providers.llm.openai_provider import OpenAILLMProvider
from designvault.providers.ranker.llm_semantic_ranker import LLMSemanticRanker
from designvault.providers.store.postgres_asset_store import PostgresAssetStore
from designvault.providers.store.postgres_base import create_postgres_engine
from designvault.providers.store.postgres_directory_store import PostgresDirectoryStore
from designvault.providers.store.postgres_search_log_store import PostgresSearchLogStore
from designvault.providers.store.sqlite_asset_store import SQLiteAssetStore
from designvault.providers.store.sqlite_directory_store import SQLiteDirectoryStore
from designvault.providers.store.sqlite_search_log_store import SQLiteSearchLogStore
from designvault.services.asset_service import AssetService
from designvault.services.audit_service import AuditService
from designvault.services.lexical_search import LexicalSearch
from designvault.services.permission_resolver import PermissionResolver
from designvault.services.search_service import SearchService
from designvault.services.semantic_search import SemanticSearch
from designvault.services.structured_search import StructuredSearch
from designvault.services.suggestion_service import SuggestionService
from designvault.services.telemetry import TelemetryLogger
from designvault.utils.errors import ConfigurationError
from designvault.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the first available LLM provider based on configured API keys.

    Priority order: Anthropic -> OpenAI -> Ollama (always available).
    """
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def build_stores(
    app_settings: Settings,
) -> tuple[IAssetStore, IDirectoryStore, ISearchLogStore, AsyncEngine | None]:
    """Construct the store family named by ``database_backend``.

    Returns the asset, directory and search-log stores plus the shared
    SQLAlchemy engine (``None`` for SQLite) so the caller can dispose it.
    """
    backend = app_settings.database_backend.strip().lower()
    if backend == "sqlite":
        return (
            SQLiteAssetStore(
                db_path=app_settings.sqlite_db_path,
                fts_enabled=app_settings.sqlite_fts_enabled,
            ),
            SQLiteDirectoryStore(db_path=app_settings.sqlite_db_path),
            SQLiteSearchLogStore(db_path=app_settings.sqlite_db_path),
            None,
        )
    if backend == "postgres":
        engine = create_postgres_engine(app_settings.postgres_dsn, app_settings.postgres_pool_size)
        return (
            PostgresAssetStore(engine),
            PostgresDirectoryStore(engine),
            PostgresSearchLogStore(engine),
            engine,
        )
    raise ConfigurationError(
        message=f"Unknown database_backend {app_settings.database_backend!r}; expected 'sqlite' or 'postgres'"
    )


def build_components(
    app_settings: Settings,
    *,
    classifier: IClassifier | None = None,
    ranker: ISemanticRanker | None = None,
) -> dict[str, Any]:
    """Construct every provider and service; keys become ``app.state`` attributes.

    *classifier* and *ranker* replace the LLM-backed defaults when given.
    """
    config = load_config(app_settings.config_path, app_settings)
    policy = build_escalation_policy(config)

    asset_store, directory, search_log, engine = build_stores(app_settings)
    blob_store = LocalBlobStore(app_settings.blob_root)

    llm = _build_llm_provider(app_settings)
    classifier = classifier or LLMAssetClassifier(llm)
    ranker = ranker or LLMSemanticRanker(llm, min_score=policy.semantic_min_score)

    resolver = PermissionResolver(directory)
    telemetry = TelemetryLogger(search_log, build_telemetry_options(config))
    pipeline = ClassificationPipeline(
        asset_store,
        blob_store,
        classifier,
        build_classification_options(config),
    )
    upload_options = build_upload_options(config)

    search_service = SearchService(
        resolver=resolver,
        structured=StructuredSearch(asset_store),
        lexical=LexicalSearch(asset_store, max_results=policy.lexical_max_results),
        semantic=SemanticSearch(asset_store, ranker, policy),
        telemetry=telemetry,
        policy=policy,
    )

    return {
        "config": config,
        "database_backend": app_settings.database_backend,
        "engine": engine,
        "asset_store": asset_store,
        "directory_store": directory,
        "search_log_store": search_log,
        "blob_store": blob_store,
        "llm_provider_name": llm.get_provider_name(),
        "classifier": classifier,
        "permission_resolver": resolver,
        "telemetry": telemetry,
        "pipeline": pipeline,
        "upload_options": upload_options,
        "search_service": search_service,
        "suggestion_service": SuggestionService(resolver, asset_store, directory),
        "audit_service": AuditService(search_log),
        "asset_service": AssetService(resolver, asset_store, blob_store, pipeline, upload_options),
    }


async def initialize_stores(components: dict[str, Any]) -> None:
    """Create schemas (idempotent).  Directory first: grants reference sites and users."""
    await components["directory_store"].initialize()
    await components["asset_store"].initialize()
    await components["search_log_store"].initialize()


async def close_components(components: dict[str, Any]) -> None:
    await components["pipeline"].shutdown()
    await components["telemetry"].stop()
    engine: AsyncEngine | None = components.get("engine")
    if engine is not None:
        await engine.dispose()


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    *,
    classifier: IClassifier | None = None,
    ranker: ISemanticRanker | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Components are constructed and initialised in the lifespan handler, so
    creating the app performs no I/O.
    """
    app_settings = app_settings or Settings()

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        components = build_components(app_settings, classifier=classifier, ranker=ranker)
        for key, value in components.items():
            setattr(application.state, key, value)

        await initialize_stores(components)
        await components["telemetry"].start()
        await components["pipeline"].recover_interrupted()
        _logger.info(
            "app_startup",
            version="0.1.0",
            environment=app_settings.app_env,
            database_backend=app_settings.database_backend,
            llm=components["llm_provider_name"],
        )

        yield

        await close_components(components)
        _logger.info("app_shutdown")

    application = FastAPI(
        title="DesignVault API",
        version="0.1.0",
        description=(
            "Permission-scoped search over a multi-tenant interior design asset "
            "library, with tiered structured, full-text and AI-ranked retrieval "
            "and background AI classification of uploads."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)
    register_exception_handlers(application)

    application.include_router(api_router)
    return application


settings = Settings()
configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)

app = create_app(settings)

if __name__ == "__main__":
    uvicorn.run(
        "designvault.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
