"""Custom exception hierarchy for DesignVault.

All application exceptions inherit from :class:`DesignVaultError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend or external service (e.g. "sqlite", "postgres", "anthropic") caused
the failure.

The hierarchy is organized by how the search and classification paths
treat each failure:

    DesignVaultError  (base -- catch-all for any DesignVault error)
    +-- QueryValidationError     (malformed input, rejected before any tier runs)
    +-- PermissionDeniedError    (principal lacks view/upload rights)
    +-- AssetNotFoundError       (unknown asset id)
    +-- BackendUnavailableError  (Tier-1/Tier-2 store failure, fatal to a search)
    +-- InferenceError           (semantic ranking failure, never fatal)
    +-- TelemetryWriteError      (audit record write failure, always swallowed)
    +-- PipelineError            (invalid classification state transition)
    +-- ConfigurationError       (startup / missing config)
    +-- LLMError                 (any LLM API call failure)
    +-- RateLimitError           (provider rate-limit or quota exceeded)
    +-- ProviderUnavailableError (ranking provider not configured; Tier-3 degrades to empty)

An empty accessible-site set is not an exception: the search
path returns an empty result labelled ``none`` instead.
"""


class DesignVaultError(Exception):
    """Base exception for all DesignVault errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[postgres] connection refused``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Request errors
# ---------------------------------------------------------------------------

class QueryValidationError(DesignVaultError):
    """Raised when caller input is malformed (empty query, bad paging, etc.)."""

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PermissionDeniedError(DesignVaultError):
    """Raised when a principal acts on a site it has no grant for."""

    def __init__(
        self,
        message: str = "Permission denied",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AssetNotFoundError(DesignVaultError):
    """Raised when an asset id does not resolve to a stored asset."""

    def __init__(
        self,
        message: str = "Asset not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage / search errors
# ---------------------------------------------------------------------------

class BackendUnavailableError(DesignVaultError):
    """Raised when the relational store fails during a read or write.

    Fatal for Tier-1 and Tier-2: the search request fails rather than
    returning a partial answer.
    """

    def __init__(
        self,
        message: str = "Storage backend is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InferenceError(DesignVaultError):
    """Raised when the semantic ranker cannot produce scores.

    The semantic tier catches this and reports zero results.
    """

    def __init__(
        self,
        message: str = "Semantic inference failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TelemetryWriteError(DesignVaultError):
    """Raised by a search-log store when an audit record cannot be written."""

    def __init__(
        self,
        message: str = "Telemetry write failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(DesignVaultError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(DesignVaultError):
    """Raised when an API rate limit or usage quota is exceeded.

    Classification maps this to a retryable ``QUOTA_EXCEEDED`` failure.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(DesignVaultError):
    """Raised when an LLM API call fails or returns an unparseable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(DesignVaultError):
    """Raised when the classification pipeline is asked for an invalid transition."""

    def __init__(
        self,
        message: str = "Classification pipeline failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DesignVaultError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
