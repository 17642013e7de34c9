"""Asset upload, browsing, editing and operator classification controls."""

from __future__ import annotations

import re
import uuid

from designvault.interfaces.asset_store import IAssetStore
from designvault.interfaces.blob_store import IBlobStore
from designvault.models.asset import Asset, AssetCategory, ProcessingStatus
from designvault.models.options import UploadOptions
from designvault.models.search import AssetFilter, AssetPage, SortField, SortOrder
from designvault.pipeline.classification_pipeline import ClassificationPipeline
from designvault.services.permission_resolver import PermissionResolver
from designvault.utils.errors import AssetNotFoundError, PermissionDeniedError, QueryValidationError
from designvault.utils.logging import get_logger
from designvault.utils.mime_types import is_supported
from designvault.utils.timestamps import utcnow

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")

MAX_LIST_LIMIT = 1000


def build_storage_key(site_id: str, category: AssetCategory, asset_id: str, filename: str) -> str:
    """``sites/<site>/<category>/<yyyy>/<mm>/<dd>/<asset id>_<safe filename>``."""
    safe_name = _UNSAFE_FILENAME_RE.sub("_", filename).strip("._") or "file"
    return f"sites/{site_id}/{category.value}/{utcnow():%Y/%m/%d}/{asset_id}_{safe_name}"


class AssetService:
    """Entry points around the asset lifecycle.

    Uploading stores the bytes, inserts a ``pending`` asset and hands it to
    the classification pipeline without waiting.  Reads are scoped to the
    caller's viewable sites; edits and deletes need upload permission on the
    asset's site.  Operator functions reset failed classifications and
    report pipeline state.
    """

    def __init__(
        self,
        resolver: PermissionResolver,
        asset_store: IAssetStore,
        blob_store: IBlobStore,
        pipeline: ClassificationPipeline,
        options: UploadOptions | None = None,
    ) -> None:
        self._resolver = resolver
        self._store = asset_store
        self._blobs = blob_store
        self._pipeline = pipeline
        self._options = options or UploadOptions()
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Upload / read
    # ------------------------------------------------------------------

    async def upload(
        self,
        user_id: str,
        site_id: str,
        filename: str,
        mime_type: str,
        data: bytes,
        category: str,
        display_name: str | None = None,
    ) -> Asset:
        """Validate, store and register a new asset, then schedule classification.

        Raises
        ------
        QueryValidationError
            Unknown category, unsupported MIME type, empty or oversized file.
        PermissionDeniedError
            If *user_id* may not upload to *site_id*.
        """
        parsed_category = AssetCategory.parse(category)
        if parsed_category is None:
            raise QueryValidationError(message=f"Unknown category: {category}")
        mime_type = mime_type.strip().lower()
        if not is_supported(mime_type):
            raise QueryValidationError(message=f"Unsupported file type: {mime_type}")
        if not data:
            raise QueryValidationError(message="File is empty")
        if len(data) > self._options.max_bytes:
            raise QueryValidationError(
                message=f"File exceeds the {self._options.max_bytes} byte upload limit"
            )
        if not filename.strip():
            raise QueryValidationError(message="Filename is required")

        if not await self._resolver.can_upload_to_site(user_id, site_id):
            raise PermissionDeniedError(message=f"No upload permission for site {site_id}")

        asset_id = str(uuid.uuid4())
        storage_key = build_storage_key(site_id, parsed_category, asset_id, filename)
        await self._blobs.put(storage_key, data)

        now = utcnow()
        asset = await self._store.insert_asset(
            Asset(
                id=asset_id,
                filename=filename,
                display_name=(display_name or "").strip() or filename,
                storage_key=storage_key,
                mime_type=mime_type,
                size_bytes=len(data),
                category=parsed_category,
                site_id=site_id,
                uploaded_by=user_id,
                processing_status=ProcessingStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
        )
        self._pipeline.submit(asset.id)
        self._logger.info(
            "asset_uploaded",
            asset_id=asset.id,
            site_id=site_id,
            user_id=user_id,
            mime_type=mime_type,
            size_bytes=len(data),
        )
        return asset

    async def get_asset(self, user_id: str, asset_id: str) -> Asset:
        """Return *asset_id* if *user_id* may view its site.

        Assets on inaccessible sites are reported as not found.
        """
        asset = await self._store.get_asset(asset_id)
        if asset is None or not await self._resolver.can_view_site(user_id, asset.site_id):
            raise AssetNotFoundError(message=f"Asset {asset_id} not found")
        return asset

    async def list_assets(
        self,
        user_id: str,
        site_id: str | None = None,
        category: str | None = None,
        page: int = 1,
        limit: int = 20,
        sort_by: SortField = SortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
    ) -> AssetPage:
        """Browse the caller's accessible assets, optionally narrowed to one
        site and one category.  A site outside the caller's scope yields an
        empty page rather than an error.
        """
        if page < 1 or not 1 <= limit <= MAX_LIST_LIMIT:
            raise QueryValidationError(message=f"page must be >= 1 and limit within 1..{MAX_LIST_LIMIT}")
        if sort_by == SortField.RELEVANCE:
            raise QueryValidationError(message="Listing sorts by created_at, name or size")
        categories = None
        if category:
            parsed = AssetCategory.parse(category)
            if parsed is None:
                raise QueryValidationError(message=f"Unknown category: {category}")
            categories = [parsed]

        site_ids = await self._resolver.accessible_sites(user_id)
        if site_id is not None:
            site_ids &= {site_id}
        if not site_ids:
            return AssetPage()

        return await self._store.filter_assets(
            AssetFilter(site_ids=sorted(site_ids), categories=categories),
            [],
            sort_by=sort_by,
            sort_order=sort_order,
            offset=(page - 1) * limit,
            limit=limit,
        )

    # ------------------------------------------------------------------
    # Edit / delete (upload permission on the asset's site)
    # ------------------------------------------------------------------

    async def update_asset(
        self,
        user_id: str,
        asset_id: str,
        display_name: str | None = None,
        category: str | None = None,
    ) -> Asset:
        """Rename an asset and/or move it to another category.

        Raises
        ------
        QueryValidationError
            Nothing to change, a blank name or an unknown category.
        AssetNotFoundError
            Unknown asset, or one on a site the caller cannot view.
        PermissionDeniedError
            The caller can view the site but not upload to it.
        """
        new_name = None
        if display_name is not None:
            new_name = display_name.strip()
            if not new_name:
                raise QueryValidationError(message="display_name must not be blank")
        new_category = None
        if category is not None:
            new_category = AssetCategory.parse(category)
            if new_category is None:
                raise QueryValidationError(message=f"Unknown category: {category}")
        if new_name is None and new_category is None:
            raise QueryValidationError(message="Pass display_name or category to update")

        await self._editable_asset(user_id, asset_id)
        updated = await self._store.update_asset_details(
            asset_id, display_name=new_name, category=new_category
        )
        if updated is None:
            raise AssetNotFoundError(message=f"Asset {asset_id} not found")
        self._logger.info(
            "asset_edited",
            asset_id=asset_id,
            user_id=user_id,
            renamed=new_name is not None,
            category=new_category.value if new_category else None,
        )
        return updated

    async def delete_asset(self, user_id: str, asset_id: str) -> None:
        """Delete the asset row, then its stored bytes.

        Same errors as :meth:`update_asset` for unknown or protected assets.
        A classification still running for the asset finds no row to write.
        """
        asset = await self._editable_asset(user_id, asset_id)
        if not await self._store.delete_asset(asset_id):
            raise AssetNotFoundError(message=f"Asset {asset_id} not found")
        try:
            blob_removed = await self._blobs.delete(asset.storage_key)
        except OSError as exc:
            # The row is gone; an orphaned file is left for cleanup.
            self._logger.warning("asset_blob_delete_failed", asset_id=asset_id, error=str(exc))
            blob_removed = False
        self._logger.info(
            "asset_removed",
            asset_id=asset_id,
            user_id=user_id,
            site_id=asset.site_id,
            blob_removed=blob_removed,
        )

    async def _editable_asset(self, user_id: str, asset_id: str) -> Asset:
        asset = await self._store.get_asset(asset_id)
        if asset is None:
            raise AssetNotFoundError(message=f"Asset {asset_id} not found")
        permissions = await self._resolver.permissions_for(user_id, asset.site_id)
        if not permissions.can_view:
            raise AssetNotFoundError(message=f"Asset {asset_id} not found")
        if not permissions.can_upload:
            raise PermissionDeniedError(message=f"No upload permission for site {asset.site_id}")
        return asset

    # ------------------------------------------------------------------
    # Operator functions
    # ------------------------------------------------------------------

    async def retry_classification(
        self,
        asset_ids: list[str] | None = None,
        retry_all: bool = False,
        wait: bool = False,
    ) -> list[str]:
        """Reset failed assets to ``pending`` and re-enter them into the pipeline."""
        if retry_all and asset_ids:
            raise QueryValidationError(message="Pass either asset ids or retry_all, not both")
        if not retry_all and not asset_ids:
            raise QueryValidationError(message="Pass asset ids or set retry_all")
        return await self._pipeline.retry(None if retry_all else list(dict.fromkeys(asset_ids or [])), wait=wait)

    async def failed_assets(self, page: int = 1, limit: int = 20) -> AssetPage:
        if page < 1 or not 1 <= limit <= 100:
            raise QueryValidationError(message="page must be >= 1 and limit within 1..100")
        return await self._store.list_failed(offset=(page - 1) * limit, limit=limit)

    async def status_counts(self) -> dict[ProcessingStatus, int]:
        return await self._store.count_by_status()
