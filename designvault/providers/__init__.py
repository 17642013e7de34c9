"""Concrete adapters for the contracts in ``designvault.interfaces``."""
