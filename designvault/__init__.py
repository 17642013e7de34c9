"""DesignVault: permission-scoped search and AI classification for interior design assets."""

__version__ = "0.1.0"
