"""Business logic: permission scoping, the search tier cascade, telemetry,
suggestions, audit reads and asset lifecycle operations."""

from designvault.services.asset_service import AssetService
from designvault.services.audit_service import AuditService
from designvault.services.lexical_search import LexicalSearch
from designvault.services.permission_resolver import PermissionResolver
from designvault.services.query_parser import parse_query
from designvault.services.search_service import SearchService
from designvault.services.semantic_search import SemanticSearch
from designvault.services.structured_search import StructuredSearch, build_asset_filter
from designvault.services.suggestion_service import SuggestionService
from designvault.services.telemetry import TelemetryLogger

__all__ = [
    "AssetService",
    "AuditService",
    "LexicalSearch",
    "PermissionResolver",
    "SearchService",
    "SemanticSearch",
    "StructuredSearch",
    "SuggestionService",
    "TelemetryLogger",
    "build_asset_filter",
    "parse_query",
]
