"""Permission resolution for site-scoped asset access.

Admins see and upload to every active site without explicit grants.
Everyone else gets the active sites their grants allow.  Reads fail
closed: a directory backend error yields "no access", never an exception,
so an ambiguous failure can only ever hide data.
"""

from __future__ import annotations

from designvault.interfaces.directory_store import IDirectoryStore
from designvault.models.asset import PermissionGrant, Principal, SitePermissions
from designvault.utils.errors import QueryValidationError
from designvault.utils.logging import get_logger


class PermissionResolver:
    """Computes accessible site sets and per-site permissions for principals."""

    def __init__(self, directory: IDirectoryStore) -> None:
        self._directory = directory
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Reads (fail closed)
    # ------------------------------------------------------------------

    async def accessible_sites(self, user_id: str, require_upload: bool = False) -> set[str]:
        """Return the ids of the active sites *user_id* may view.

        With ``require_upload`` the set is narrowed to sites the user may
        also upload to.  Unknown or inactive principals get an empty set.
        """
        try:
            principal = await self._directory.get_principal(user_id)
            if principal is None or not principal.is_active:
                return set()
            if principal.is_admin:
                return set(await self._directory.list_active_site_ids())
            return set(await self._directory.granted_site_ids(user_id, require_upload=require_upload))
        except Exception as exc:
            self._logger.warning(
                "permission_lookup_failed",
                user_id=user_id,
                require_upload=require_upload,
                error=str(exc),
            )
            return set()

    async def permissions_for(self, user_id: str, site_id: str) -> SitePermissions:
        """Return the effective permissions of *user_id* on *site_id*."""
        denied = SitePermissions(can_view=False, can_upload=False)
        try:
            principal = await self._directory.get_principal(user_id)
            if principal is None or not principal.is_active:
                return denied
            site = await self._directory.get_site(site_id)
            if site is None or not site.is_active:
                return denied
            if principal.is_admin:
                return SitePermissions(can_view=True, can_upload=True)
            grant = await self._directory.get_grant(user_id, site_id)
        except Exception as exc:
            self._logger.warning(
                "permission_lookup_failed",
                user_id=user_id,
                site_id=site_id,
                error=str(exc),
            )
            return denied

        if grant is None or not grant.can_view:
            return denied
        return SitePermissions(can_view=True, can_upload=grant.can_upload)

    async def can_view_site(self, user_id: str, site_id: str) -> bool:
        return (await self.permissions_for(user_id, site_id)).can_view

    async def can_upload_to_site(self, user_id: str, site_id: str) -> bool:
        perms = await self.permissions_for(user_id, site_id)
        return perms.can_view and perms.can_upload

    async def list_grants(self, user_id: str) -> list[PermissionGrant]:
        try:
            return await self._directory.list_grants(user_id)
        except Exception as exc:
            self._logger.warning("permission_lookup_failed", user_id=user_id, error=str(exc))
            return []

    # ------------------------------------------------------------------
    # Writes (errors propagate)
    # ------------------------------------------------------------------

    async def grant(
        self,
        user_id: str,
        site_id: str,
        can_view: bool = True,
        can_upload: bool = False,
    ) -> PermissionGrant:
        """Create or replace the grant of *user_id* on *site_id*.

        Raises
        ------
        QueryValidationError
            Unknown principal or site, or an upload right without view.
        """
        if can_upload and not can_view:
            raise QueryValidationError(message="can_upload requires can_view")
        if await self._directory.get_principal(user_id) is None:
            raise QueryValidationError(message=f"Unknown user: {user_id}")
        if await self._directory.get_site(site_id) is None:
            raise QueryValidationError(message=f"Unknown site: {site_id}")

        stored = await self._directory.upsert_grant(
            PermissionGrant(user_id=user_id, site_id=site_id, can_view=can_view, can_upload=can_upload)
        )
        self._logger.info(
            "grant_saved",
            user_id=user_id,
            site_id=site_id,
            can_view=can_view,
            can_upload=can_upload,
        )
        return stored

    async def revoke(self, user_id: str, site_id: str) -> bool:
        revoked = await self._directory.revoke_grant(user_id, site_id)
        self._logger.info("grant_revoked", user_id=user_id, site_id=site_id, revoked=revoked)
        return revoked

    async def resolve_principal(self, user_id: str) -> Principal | None:
        """Look up an active principal; ``None`` when unknown, inactive or unreadable."""
        try:
            principal = await self._directory.get_principal(user_id)
        except Exception as exc:
            self._logger.warning("permission_lookup_failed", user_id=user_id, error=str(exc))
            return None
        if principal is None or not principal.is_active:
            return None
        return principal
