"""PostgreSQL-backed directory store (principals, sites, permission grants)."""

from __future__ import annotations

import structlog
from sqlalchemy import text
from sqlalchemy.engine import RowMapping

from designvault.interfaces.directory_store import IDirectoryStore
from designvault.models.asset import PermissionGrant, Principal, Site, UserRole
from designvault.providers.store.postgres_base import PostgresStoreBase
from designvault.utils.timestamps import utcnow

logger = structlog.get_logger(logger_name=__name__)

_SCHEMA_SQL = [
    """\
CREATE TABLE IF NOT EXISTS users (
    id          TEXT        PRIMARY KEY,
    email       TEXT        NOT NULL DEFAULT '',
    name        TEXT        NOT NULL DEFAULT '',
    role        TEXT        NOT NULL DEFAULT 'employee',
    is_active   BOOLEAN     NOT NULL DEFAULT TRUE,
    created_at  TIMESTAMPTZ NOT NULL
)
""",
    """\
CREATE TABLE IF NOT EXISTS sites (
    id           TEXT        PRIMARY KEY,
    name         TEXT        NOT NULL,
    client_name  TEXT        NOT NULL DEFAULT '',
    description  TEXT,
    is_active    BOOLEAN     NOT NULL DEFAULT TRUE,
    created_at   TIMESTAMPTZ NOT NULL,
    updated_at   TIMESTAMPTZ NOT NULL
)
""",
    """\
CREATE TABLE IF NOT EXISTS site_permissions (
    id          BIGSERIAL   PRIMARY KEY,
    user_id     TEXT        NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    site_id     TEXT        NOT NULL REFERENCES sites(id) ON DELETE CASCADE,
    can_view    BOOLEAN     NOT NULL DEFAULT TRUE,
    can_upload  BOOLEAN     NOT NULL DEFAULT FALSE,
    created_at  TIMESTAMPTZ NOT NULL,
    UNIQUE (user_id, site_id)
)
""",
    "CREATE INDEX IF NOT EXISTS idx_site_permissions_user ON site_permissions(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_sites_active ON sites(is_active)",
]


def _row_to_site(row: RowMapping) -> Site:
    return Site(
        id=row["id"],
        name=row["name"],
        client_name=row["client_name"],
        description=row["description"],
        is_active=row["is_active"],
    )


def _row_to_grant(row: RowMapping) -> PermissionGrant:
    return PermissionGrant(
        user_id=row["user_id"],
        site_id=row["site_id"],
        can_view=row["can_view"],
        can_upload=row["can_upload"],
    )


class PostgresDirectoryStore(PostgresStoreBase, IDirectoryStore):
    """PostgreSQL-backed principal, site and grant persistence."""

    async def initialize(self) -> None:
        await self._run_ddl(_SCHEMA_SQL)
        logger.info("directory_store_initialized", backend="postgres")

    async def get_principal(self, user_id: str) -> Principal | None:
        async with self._transaction() as conn:
            result = await conn.execute(
                text("SELECT id, email, name, role, is_active FROM users WHERE id = :id"),
                {"id": user_id},
            )
            row = result.mappings().first()
        if row is None:
            return None
        return Principal(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            role=UserRole(row["role"]),
            is_active=row["is_active"],
        )

    async def list_active_site_ids(self) -> list[str]:
        async with self._transaction() as conn:
            result = await conn.execute(text("SELECT id FROM sites WHERE is_active ORDER BY id"))
            return [row[0] for row in result.fetchall()]

    async def granted_site_ids(self, user_id: str, require_upload: bool = False) -> list[str]:
        sql = (
            "SELECT s.id FROM site_permissions p JOIN sites s ON s.id = p.site_id "
            "WHERE p.user_id = :user_id AND s.is_active AND p.can_view"
        )
        if require_upload:
            sql += " AND p.can_upload"
        sql += " ORDER BY s.id"
        async with self._transaction() as conn:
            result = await conn.execute(text(sql), {"user_id": user_id})
            return [row[0] for row in result.fetchall()]

    async def get_site(self, site_id: str) -> Site | None:
        sites = await self.list_sites([site_id])
        return sites[0] if sites else None

    async def list_sites(self, site_ids: list[str]) -> list[Site]:
        if not site_ids:
            return []
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "SELECT id, name, client_name, description, is_active FROM sites "
                    "WHERE id = ANY(:site_ids) ORDER BY name, id"
                ),
                {"site_ids": list(site_ids)},
            )
            rows = result.mappings().all()
        return [_row_to_site(r) for r in rows]

    async def get_grant(self, user_id: str, site_id: str) -> PermissionGrant | None:
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "SELECT user_id, site_id, can_view, can_upload FROM site_permissions "
                    "WHERE user_id = :user_id AND site_id = :site_id"
                ),
                {"user_id": user_id, "site_id": site_id},
            )
            row = result.mappings().first()
        return _row_to_grant(row) if row else None

    async def list_grants(self, user_id: str) -> list[PermissionGrant]:
        async with self._transaction() as conn:
            result = await conn.execute(
                text(
                    "SELECT user_id, site_id, can_view, can_upload FROM site_permissions "
                    "WHERE user_id = :user_id ORDER BY site_id"
                ),
                {"user_id": user_id},
            )
            rows = result.mappings().all()
        return [_row_to_grant(r) for r in rows]

    async def upsert_grant(self, grant: PermissionGrant) -> PermissionGrant:
        async with self._transaction() as conn:
            await conn.execute(
                text(
                    "INSERT INTO site_permissions (user_id, site_id, can_view, can_upload, created_at) "
                    "VALUES (:user_id, :site_id, :can_view, :can_upload, :created_at) "
                    "ON CONFLICT (user_id, site_id) DO UPDATE SET "
                    "can_view = EXCLUDED.can_view, can_upload = EXCLUDED.can_upload"
                ),
                {**grant.model_dump(), "created_at": utcnow()},
            )
        logger.info(
            "site_access_granted",
            user_id=grant.user_id,
            site_id=grant.site_id,
            can_upload=grant.can_upload,
        )
        return grant

    async def revoke_grant(self, user_id: str, site_id: str) -> bool:
        async with self._transaction() as conn:
            result = await conn.execute(
                text("DELETE FROM site_permissions WHERE user_id = :user_id AND site_id = :site_id"),
                {"user_id": user_id, "site_id": site_id},
            )
            removed = result.rowcount > 0
        logger.info("site_access_revoked", user_id=user_id, site_id=site_id, removed=removed)
        return removed

    async def add_principal(self, principal: Principal) -> Principal:
        async with self._transaction() as conn:
            await conn.execute(
                text(
                    "INSERT INTO users (id, email, name, role, is_active, created_at) "
                    "VALUES (:id, :email, :name, :role, :is_active, :created_at) "
                    "ON CONFLICT (id) DO UPDATE SET email = EXCLUDED.email, name = EXCLUDED.name, "
                    "role = EXCLUDED.role, is_active = EXCLUDED.is_active"
                ),
                {
                    "id": principal.id,
                    "email": principal.email,
                    "name": principal.name,
                    "role": principal.role.value,
                    "is_active": principal.is_active,
                    "created_at": utcnow(),
                },
            )
        return principal

    async def add_site(self, site: Site) -> Site:
        now = utcnow()
        async with self._transaction() as conn:
            await conn.execute(
                text(
                    "INSERT INTO sites (id, name, client_name, description, is_active, created_at, updated_at) "
                    "VALUES (:id, :name, :client_name, :description, :is_active, :now, :now) "
                    "ON CONFLICT (id) DO UPDATE SET name = EXCLUDED.name, "
                    "client_name = EXCLUDED.client_name, description = EXCLUDED.description, "
                    "is_active = EXCLUDED.is_active, updated_at = EXCLUDED.updated_at"
                ),
                {**site.model_dump(), "now": now},
            )
        return site
