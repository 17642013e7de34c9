"""SQLite-backed directory store (principals, sites, permission grants)."""

from __future__ import annotations

import structlog

from designvault.interfaces.directory_store import IDirectoryStore
from designvault.models.asset import PermissionGrant, Principal, Site, UserRole
from designvault.providers.store.sqlite_base import SQLiteStoreBase, placeholders
from designvault.utils.timestamps import to_db_timestamp, utcnow

logger = structlog.get_logger(logger_name=__name__)

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS users (
    id          TEXT    PRIMARY KEY,
    email       TEXT    NOT NULL DEFAULT '',
    name        TEXT    NOT NULL DEFAULT '',
    role        TEXT    NOT NULL DEFAULT 'employee',
    is_active   INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS sites (
    id           TEXT    PRIMARY KEY,
    name         TEXT    NOT NULL,
    client_name  TEXT    NOT NULL DEFAULT '',
    description  TEXT,
    is_active    INTEGER NOT NULL DEFAULT 1,
    created_at   TEXT    NOT NULL,
    updated_at   TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS site_permissions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     TEXT    NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    site_id     TEXT    NOT NULL REFERENCES sites(id) ON DELETE CASCADE,
    can_view    INTEGER NOT NULL DEFAULT 1,
    can_upload  INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL,
    UNIQUE(user_id, site_id)
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_site_permissions_user ON site_permissions(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_sites_active ON sites(is_active);",
]

_UPSERT_GRANT_SQL = """\
INSERT INTO site_permissions (user_id, site_id, can_view, can_upload, created_at)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(user_id, site_id)
DO UPDATE SET can_view   = excluded.can_view,
              can_upload = excluded.can_upload;
"""

_UPSERT_USER_SQL = """\
INSERT INTO users (id, email, name, role, is_active, created_at)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET email     = excluded.email,
              name      = excluded.name,
              role      = excluded.role,
              is_active = excluded.is_active;
"""

_UPSERT_SITE_SQL = """\
INSERT INTO sites (id, name, client_name, description, is_active, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET name        = excluded.name,
              client_name = excluded.client_name,
              description = excluded.description,
              is_active   = excluded.is_active,
              updated_at  = excluded.updated_at;
"""

_GRANTED_SITES_SQL = """\
SELECT s.id
FROM site_permissions p
JOIN sites s ON s.id = p.site_id
WHERE p.user_id = ? AND s.is_active = 1 AND p.can_view = 1
"""


class SQLiteDirectoryStore(SQLiteStoreBase, IDirectoryStore):
    """SQLite-backed principal, site and grant persistence."""

    async def initialize(self) -> None:
        self._ensure_parent_dir()
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("directory_store_initialized", path=str(self._db_path))

    async def get_principal(self, user_id: str) -> Principal | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, email, name, role, is_active FROM users WHERE id = ?", (user_id,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return Principal(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            role=UserRole(row["role"]),
            is_active=bool(row["is_active"]),
        )

    async def list_active_site_ids(self) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT id FROM sites WHERE is_active = 1 ORDER BY id")
            rows = await cursor.fetchall()
        return [r["id"] for r in rows]

    async def granted_site_ids(self, user_id: str, require_upload: bool = False) -> list[str]:
        sql = _GRANTED_SITES_SQL
        if require_upload:
            sql += " AND p.can_upload = 1"
        sql += " ORDER BY s.id"
        async with self._connect() as db:
            cursor = await db.execute(sql, (user_id,))
            rows = await cursor.fetchall()
        return [r["id"] for r in rows]

    async def get_site(self, site_id: str) -> Site | None:
        sites = await self.list_sites([site_id])
        return sites[0] if sites else None

    async def list_sites(self, site_ids: list[str]) -> list[Site]:
        if not site_ids:
            return []
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, name, client_name, description, is_active FROM sites "
                f"WHERE id IN ({placeholders(len(site_ids))}) ORDER BY name, id",
                list(site_ids),
            )
            rows = await cursor.fetchall()
        return [
            Site(
                id=r["id"],
                name=r["name"],
                client_name=r["client_name"],
                description=r["description"],
                is_active=bool(r["is_active"]),
            )
            for r in rows
        ]

    async def get_grant(self, user_id: str, site_id: str) -> PermissionGrant | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT user_id, site_id, can_view, can_upload FROM site_permissions "
                "WHERE user_id = ? AND site_id = ?",
                (user_id, site_id),
            )
            row = await cursor.fetchone()
        return self._row_to_grant(row) if row else None

    async def list_grants(self, user_id: str) -> list[PermissionGrant]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT user_id, site_id, can_view, can_upload FROM site_permissions "
                "WHERE user_id = ? ORDER BY site_id",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_grant(r) for r in rows]

    async def upsert_grant(self, grant: PermissionGrant) -> PermissionGrant:
        async with self._connect() as db:
            await db.execute(
                _UPSERT_GRANT_SQL,
                (
                    grant.user_id,
                    grant.site_id,
                    int(grant.can_view),
                    int(grant.can_upload),
                    to_db_timestamp(utcnow()),
                ),
            )
            await db.commit()
        logger.info(
            "site_access_granted",
            user_id=grant.user_id,
            site_id=grant.site_id,
            can_upload=grant.can_upload,
        )
        return grant

    async def revoke_grant(self, user_id: str, site_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM site_permissions WHERE user_id = ? AND site_id = ?",
                (user_id, site_id),
            )
            await db.commit()
            removed = cursor.rowcount > 0
        logger.info("site_access_revoked", user_id=user_id, site_id=site_id, removed=removed)
        return removed

    async def add_principal(self, principal: Principal) -> Principal:
        async with self._connect() as db:
            await db.execute(
                _UPSERT_USER_SQL,
                (
                    principal.id,
                    principal.email,
                    principal.name,
                    principal.role.value,
                    int(principal.is_active),
                    to_db_timestamp(utcnow()),
                ),
            )
            await db.commit()
        return principal

    async def add_site(self, site: Site) -> Site:
        now = to_db_timestamp(utcnow())
        async with self._connect() as db:
            await db.execute(
                _UPSERT_SITE_SQL,
                (site.id, site.name, site.client_name, site.description, int(site.is_active), now, now),
            )
            await db.commit()
        return site

    @staticmethod
    def _row_to_grant(row) -> PermissionGrant:  # noqa: ANN001
        return PermissionGrant(
            user_id=row["user_id"],
            site_id=row["site_id"],
            can_view=bool(row["can_view"]),
            can_upload=bool(row["can_upload"]),
        )
