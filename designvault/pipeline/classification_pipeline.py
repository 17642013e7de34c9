"""Asynchronous classification state machine.

Each asset moves through::

    pending --(claim)--> processing --(result)--> completed
                                    --(failure, exception or timeout)--> failed
    failed --(operator retry)--> pending

Every transition is one conditional write keyed by asset id and expected
status (``begin_processing``, ``record_classification``,
``record_failure``, ``reset_failed``).  There is no lock: when two workers
race for the same asset only one claim succeeds, and a duplicate retry
costs at most one redundant inference call.  Classification overwrites, so
the final state is always ``completed`` or ``failed``.  Claimed work that
is cancelled records a retryable failure on its way out, and
:meth:`ClassificationPipeline.recover_interrupted` fails whatever a crashed
process left ``processing``.

Uploads call :meth:`ClassificationPipeline.submit`, which schedules the
work as a detached task and returns immediately; progress is observable
only through the asset's status.  All inference work shares one semaphore
bounded by ``max_concurrency``.
"""

from __future__ import annotations

import asyncio
import contextlib

from designvault.interfaces.asset_store import IAssetStore
from designvault.interfaces.blob_store import IBlobStore
from designvault.interfaces.classifier import IClassifier
from designvault.models.asset import ProcessingStatus
from designvault.models.classification import (
    ClassificationFailure,
    ClassificationOutcome,
    ClassificationResult,
    FailureCode,
)
from designvault.models.options import ClassificationOptions
from designvault.utils.concurrency import throttled_gather
from designvault.utils.errors import PipelineError
from designvault.utils.logging import get_logger

_CANCELLED = ClassificationFailure(
    code=FailureCode.API_ERROR,
    message="Classification cancelled before it finished",
    retryable=True,
)
_INTERRUPTED = ClassificationFailure(
    code=FailureCode.API_ERROR,
    message="Classification interrupted by a restart",
    retryable=True,
)


class ClassificationPipeline:
    """Drives assets from ``pending`` to ``completed`` or ``failed``."""

    def __init__(
        self,
        asset_store: IAssetStore,
        blob_store: IBlobStore,
        classifier: IClassifier,
        options: ClassificationOptions | None = None,
    ) -> None:
        self._store = asset_store
        self._blobs = blob_store
        self._classifier = classifier
        self._options = options or ClassificationOptions()
        self._semaphore = asyncio.Semaphore(self._options.max_concurrency)
        self._tasks: set[asyncio.Task[ProcessingStatus | None]] = set()
        self._logger = get_logger(__name__)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def submit(self, asset_id: str) -> asyncio.Task[ProcessingStatus | None]:
        """Schedule classification of *asset_id* without waiting for it."""
        task = asyncio.create_task(self._process_limited(asset_id), name=f"classify-{asset_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def process_many(self, asset_ids: list[str]) -> list[ProcessingStatus | None | BaseException]:
        """Classify *asset_ids* concurrently and wait for all of them."""
        return await throttled_gather(
            [self.process(asset_id) for asset_id in asset_ids],
            self._semaphore,
        )

    async def retry(self, asset_ids: list[str] | None = None, wait: bool = False) -> list[str]:
        """Reset ``failed`` assets to ``pending`` and re-enter them.

        With ``asset_ids=None`` every failed asset is reset.  Ids that are
        not currently ``failed`` are left alone.  Returns the ids that were
        reset; with ``wait=True`` returns only after they are re-classified.
        """
        reset_ids = await self._store.reset_failed(asset_ids)
        self._logger.info("classification_retry", requested=asset_ids, reset=len(reset_ids))
        if wait:
            await self.process_many(reset_ids)
        else:
            for asset_id in reset_ids:
                self.submit(asset_id)
        return reset_ids

    async def process(self, asset_id: str) -> ProcessingStatus | None:
        """Run one asset through the state machine.

        Returns the status this call wrote, or ``None`` when the asset was
        not ``pending`` (another worker holds it or it already finished).

        Raises
        ------
        PipelineError
            If *asset_id* does not exist.
        """
        if not await self._store.begin_processing(asset_id):
            asset = await self._store.get_asset(asset_id)
            if asset is None:
                raise PipelineError(message=f"Asset {asset_id} not found")
            self._logger.info(
                "classification_skipped",
                asset_id=asset_id,
                status=asset.processing_status.value,
                claimable=asset.processing_status.can_transition_to(ProcessingStatus.PROCESSING),
            )
            return None

        try:
            return await self._process_claimed(asset_id)
        except asyncio.CancelledError:
            # The claim is ours: leave the asset retryable, not ``processing``.
            await asyncio.shield(self._store.record_failure(asset_id, _CANCELLED))
            self._logger.warning("classification_cancelled", asset_id=asset_id)
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def recover_interrupted(self) -> list[str]:
        """Fail assets left ``processing`` by a dead process and requeue ``pending`` ones.

        Call once at startup, before any work is submitted.  Returns the ids
        moved to ``failed``; they are picked up by the operator retry.
        """
        failed_ids = await self._store.fail_interrupted(_INTERRUPTED)
        pending_ids = await self._store.list_ids_by_status(ProcessingStatus.PENDING)
        for asset_id in pending_ids:
            self.submit(asset_id)
        if failed_ids or pending_ids:
            self._logger.warning(
                "classification_recovered",
                failed=len(failed_ids),
                requeued=len(pending_ids),
            )
        return failed_ids

    async def drain(self) -> None:
        """Wait for every submitted task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Give in-flight work *timeout* seconds, then cancel what remains.

        Cancelled assets that were already claimed are marked ``failed``
        (retryable); ones still waiting for a slot stay ``pending`` and are
        requeued by :meth:`recover_interrupted` on the next start.
        """
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if pending:
            self._logger.warning("classification_cancelled_on_shutdown", count=len(pending))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _process_limited(self, asset_id: str) -> ProcessingStatus | None:
        async with self._semaphore:
            return await self.process(asset_id)

    async def _process_claimed(self, asset_id: str) -> ProcessingStatus | None:
        asset = await self._store.get_asset(asset_id)
        if asset is None:
            raise PipelineError(message=f"Asset {asset_id} disappeared during classification")

        self._logger.info(
            "classification_started",
            asset_id=asset_id,
            mime_type=asset.mime_type,
            classifier=self._classifier.get_provider_name(),
        )
        outcome = await self._classify(asset_id, asset.storage_key, asset.mime_type, asset.filename)

        if isinstance(outcome, ClassificationResult):
            written = await self._store.record_classification(asset_id, outcome)
            status = ProcessingStatus.COMPLETED
            self._logger.info(
                "classification_completed",
                asset_id=asset_id,
                tags=len(outcome.tags),
                confidence=outcome.confidence,
            )
        else:
            written = await self._store.record_failure(asset_id, outcome)
            status = ProcessingStatus.FAILED
            self._logger.warning(
                "classification_failed",
                asset_id=asset_id,
                code=outcome.code.value,
                retryable=outcome.retryable,
                error=outcome.message,
            )

        if not written:
            self._logger.warning("classification_write_skipped", asset_id=asset_id, status=status.value)
            return None
        return status

    async def _classify(
        self,
        asset_id: str,
        storage_key: str,
        mime_type: str,
        filename: str,
    ) -> ClassificationOutcome:
        """Read the blob and call the classifier; exceptions become failures."""
        try:
            raw_bytes = await self._blobs.get(storage_key)
        except FileNotFoundError:
            return ClassificationFailure(
                code=FailureCode.API_ERROR,
                message=f"Stored file not found: {storage_key}",
                retryable=False,
            )
        except Exception as exc:
            return ClassificationFailure(
                code=FailureCode.API_ERROR,
                message=f"Could not read stored file: {exc}",
                retryable=True,
            )

        try:
            return await asyncio.wait_for(
                self._classifier.classify(asset_id, raw_bytes, mime_type, filename),
                timeout=self._options.timeout_seconds,
            )
        except asyncio.TimeoutError:
            return ClassificationFailure(
                code=FailureCode.API_ERROR,
                message=f"Classification timed out after {self._options.timeout_seconds}s",
                retryable=True,
            )
        except Exception as exc:
            return ClassificationFailure(
                code=FailureCode.API_ERROR,
                message=f"Classifier raised {type(exc).__name__}: {exc}",
                retryable=True,
            )

    def _on_task_done(self, task: asyncio.Task[ProcessingStatus | None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "classification_task_error",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )
