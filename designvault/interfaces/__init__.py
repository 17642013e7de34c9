"""Public interface definitions for storage backends and external services.

Every backend and external service is reached exclusively through the
abstract base classes in this package.  Concrete adapters live in
``designvault/providers/`` and are wired together in ``designvault/main.py``;
unit tests inject mocks or fakes through the same contracts.

CONCRETE PROVIDER MAP:
    Interface          →  Concrete implementations (in designvault/providers/)
    ─────────────────────────────────────────────────────────────────────
    IAssetStore        →  SQLiteAssetStore, PostgresAssetStore
    IDirectoryStore    →  SQLiteDirectoryStore, PostgresDirectoryStore
    ISearchLogStore    →  SQLiteSearchLogStore, PostgresSearchLogStore
    IBlobStore         →  LocalBlobStore
    ILLMProvider       →  AnthropicLLMProvider, OpenAILLMProvider,
                          OllamaLLMProvider
    IClassifier        →  LLMAssetClassifier
    ISemanticRanker    →  LLMSemanticRanker
"""

from designvault.interfaces.asset_store import IAssetStore
from designvault.interfaces.blob_store import IBlobStore
from designvault.interfaces.classifier import IClassifier
from designvault.interfaces.directory_store import IDirectoryStore
from designvault.interfaces.llm_provider import ILLMProvider
from designvault.interfaces.search_log_store import ISearchLogStore
from designvault.interfaces.semantic_ranker import ISemanticRanker, RankedIndex

__all__ = [
    "IAssetStore",
    "IBlobStore",
    "IClassifier",
    "IDirectoryStore",
    "ILLMProvider",
    "ISearchLogStore",
    "ISemanticRanker",
    "RankedIndex",
]
