"""Abstract base class for the principal/site/grant directory.

User and site administration lives outside this service; the directory
store is the read side the permission resolver needs, plus grant upsert
and revoke for operators and the seeding helpers used in tests and local
setup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from designvault.models.asset import PermissionGrant, Principal, Site


# Concrete implementations: SQLiteDirectoryStore, PostgresDirectoryStore
# Located in: designvault/providers/store/
class IDirectoryStore(ABC):
    """Contract for principal, site, and permission-grant lookups."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the users, sites and site_permissions tables if missing."""

    @abstractmethod
    async def get_principal(self, user_id: str) -> Principal | None:
        """Return the principal for *user_id*, or ``None`` if unknown."""

    @abstractmethod
    async def list_active_site_ids(self) -> list[str]:
        """Return ids of every active site."""

    @abstractmethod
    async def granted_site_ids(self, user_id: str, require_upload: bool = False) -> list[str]:
        """Return active sites *user_id* has a view grant on.

        Parameters
        ----------
        user_id:
            The principal's id.
        require_upload:
            When ``True``, only sites whose grant also allows upload.
        """

    @abstractmethod
    async def get_site(self, site_id: str) -> Site | None:
        """Return the site with *site_id*, or ``None`` if unknown."""

    @abstractmethod
    async def list_sites(self, site_ids: list[str]) -> list[Site]:
        """Return the sites among *site_ids*, ordered by name."""

    @abstractmethod
    async def get_grant(self, user_id: str, site_id: str) -> PermissionGrant | None:
        """Return the grant for the (user, site) pair, or ``None``."""

    @abstractmethod
    async def list_grants(self, user_id: str) -> list[PermissionGrant]:
        """Return every grant held by *user_id*."""

    @abstractmethod
    async def upsert_grant(self, grant: PermissionGrant) -> PermissionGrant:
        """Create or replace the grant for ``(grant.user_id, grant.site_id)``."""

    @abstractmethod
    async def revoke_grant(self, user_id: str, site_id: str) -> bool:
        """Delete the grant; returns ``True`` if one existed."""

    @abstractmethod
    async def add_principal(self, principal: Principal) -> Principal:
        """Insert or update a principal record."""

    @abstractmethod
    async def add_site(self, site: Site) -> Site:
        """Insert or update a site record."""
