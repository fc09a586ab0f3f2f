"""Core scheduler - bounded-concurrency upload orchestration."""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models import (
    ConfigurationError,
    FilePatch,
    FileStatus,
    ManagedFile,
    OutcomeKind,
    TransferOutcome,
    UploaderConfig,
)
from ..protocols import HandlerFactory, ITransportHandler, Validator
from ..services.registry import FileRegistry, RegistryEvent
from ..services.thumbnail import ThumbnailService
from ..services.validators import DEFAULT_VALIDATORS
from ..utils.events import EventEmitter, FileProgress, Subscription
from .models import ProgressLedger, UploadQueues

logger = logging.getLogger(__name__)


class UploaderEvent(str, Enum):
    """Events emitted by FileUploader."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REMOVED = "removed"
    CHANGED = "changed"
    QUEUED = "queued"
    UPLOAD_STARTED = "upload_started"
    UPLOAD_SUCCESSFUL = "upload_successful"
    UPLOAD_FAILED = "upload_failed"
    UPLOAD_CANCELLED = "upload_cancelled"
    UPLOAD_PROGRESS = "progress"
    TOTAL_PROGRESS = "total_progress"
    STATUS_CHANGE = "statusChange"
    ALL_COMPLETE = "all_complete"
    CANCEL_ALL = "cancel_all"
    LIMIT_REACHED = "limit_reached"
    LIMIT_EXCEEDED = "limit_exceeded"


class FileUploader:
    """
    Schedules uploads of registered files under a concurrency limit.

    Files move through four disjoint queues (queued, active, completed,
    failed). Transfers are performed by handlers built from the injected
    handler factory; the uploader only tracks state and progress.

    Usage:
        uploader = FileUploader(
            UploaderConfig(allowed_concurrent_upload=2),
            handler_factory=http_handler_factory("https://example.com/upload"),
        )
        uploader.on_total_progress(lambda ratio: print(f"{ratio:.0%}"))
        uploader.on_all_complete(lambda: print("done"))

        await uploader.add_files([LocalFile.from_path(p) for p in paths])
        uploader.start_all()
        await uploader.wait()
    """

    def __init__(
        self,
        config: Optional[UploaderConfig] = None,
        handler_factory: Optional[HandlerFactory] = None,
        validators: Sequence[Validator] = DEFAULT_VALIDATORS,
        thumbnails: Optional[ThumbnailService] = None,
    ):
        self._config = config or UploaderConfig()
        if self._config.auto_upload and handler_factory is None:
            raise ConfigurationError("auto_upload requires a handler_factory")

        self._handler_factory = handler_factory
        self._registry = FileRegistry(self._config, validators, thumbnails)
        self._events = EventEmitter()
        self._queues = UploadQueues()
        self._ledger = ProgressLedger()
        self._tasks: Set[asyncio.Task] = set()
        # ids explicitly asked to start via start()/retry()
        self._requested: Set[str] = set()
        # True while queued files should be dispatched as slots free up
        self._draining = self._config.auto_upload
        # Set while a bulk operation cancels transfers; it runs the completion check itself
        self._checks_suspended = False

        self._registry.on(RegistryEvent.ACCEPTED, self._on_file_accepted)
        self._registry.on(RegistryEvent.REJECTED, self._on_file_rejected)
        self._registry.on(RegistryEvent.REMOVED, self._on_file_removed)
        self._registry.on(RegistryEvent.CHANGED, self._on_file_changed)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    # Event subscription methods
    def on(self, event: UploaderEvent, callback: Callable) -> Subscription:
        return self._events.on(UploaderEvent(event).value, callback)

    def off(self, event: UploaderEvent, callback: Callable):
        self._events.off(UploaderEvent(event).value, callback)

    def on_rejected(self, callback: Callable[[Any, List[str]], None]) -> Subscription:
        """Receives (source, reasons)."""
        return self.on(UploaderEvent.REJECTED, callback)

    def on_upload_started(self, callback: Callable[[str], None]) -> Subscription:
        return self.on(UploaderEvent.UPLOAD_STARTED, callback)

    def on_upload_successful(self, callback: Callable[[str, Any], None]) -> Subscription:
        """Receives (file_id, response)."""
        return self.on(UploaderEvent.UPLOAD_SUCCESSFUL, callback)

    def on_upload_failed(self, callback: Callable[[str, BaseException], None]) -> Subscription:
        """Receives (file_id, error)."""
        return self.on(UploaderEvent.UPLOAD_FAILED, callback)

    def on_upload_cancelled(self, callback: Callable[[str], None]) -> Subscription:
        return self.on(UploaderEvent.UPLOAD_CANCELLED, callback)

    def on_progress(self, callback: Callable[[str, float], None]) -> Subscription:
        """Receives (file_id, fraction)."""
        return self.on(UploaderEvent.UPLOAD_PROGRESS, callback)

    def on_total_progress(self, callback: Callable[[float], None]) -> Subscription:
        return self.on(UploaderEvent.TOTAL_PROGRESS, callback)

    def on_all_complete(self, callback: Callable[[], None]) -> Subscription:
        return self.on(UploaderEvent.ALL_COMPLETE, callback)

    def on_limit_reached(self, callback: Callable[[], None]) -> Subscription:
        return self.on(UploaderEvent.LIMIT_REACHED, callback)

    def on_limit_exceeded(self, callback: Callable[[int, List[Any]], None]) -> Subscription:
        """Receives (remaining_budget, rejected_batch)."""
        return self.on(UploaderEvent.LIMIT_EXCEEDED, callback)

    def _emit(self, event: UploaderEvent, *args):
        self._events.emit(event.value, *args)

    # Adding files
    async def add_files(self, sources: Iterable[Any]) -> List[ManagedFile]:
        """
        Register a batch of files.

        In single-file mode an existing file is replaced. The whole batch
        is refused (with limit_reached or limit_exceeded) when the budget
        cannot take it.

        Returns:
            Snapshots of the accepted files
        """
        sources = list(sources)
        if not self._config.multiple and not self._registry.is_empty():
            self.reset()

        if not self._can_take_files(len(sources)):
            self._maybe_limit_reached_or_exceeded(sources)
            return []

        accepted = []
        for source in sources:
            record = await self._registry.add_file(source)
            if record is not None:
                accepted.append(record)
        return accepted

    async def add_file(self, source: Any) -> Optional[ManagedFile]:
        accepted = await self.add_files([source])
        return accepted[0] if accepted else None

    def _can_take_files(self, amount: int = 1) -> bool:
        if not self._config.multiple and (amount > 1 or not self._registry.is_empty()):
            return False

        allowed = self.get_allowed_file_count()
        if allowed == -1:
            return True
        return allowed - amount >= 0

    def _maybe_limit_reached_or_exceeded(self, sources: List[Any]):
        allowed = self.get_allowed_file_count()
        if not self._config.multiple or allowed == 0:
            logger.info("File limit reached")
            self._emit(UploaderEvent.LIMIT_REACHED)
        elif allowed - len(sources) < 0:
            logger.info(f"File limit exceeded: {len(sources)} files offered, {allowed} allowed")
            self._emit(UploaderEvent.LIMIT_EXCEEDED, allowed, sources)

    # Control methods
    def start(self, file_id: str):
        """Dispatch a queued file ahead of the rest; failed files are retried."""
        if file_id in self._queues.queued:
            self._ensure_handler_factory()
            self._queues.move(file_id, "queued", front=True)
            self._requested.add(file_id)
            self._attempt_upload()
        elif file_id in self._queues.failed:
            self.retry(file_id)

    def start_all(self):
        """Open a draining run: dispatch queued files until the queue is empty."""
        self._ensure_handler_factory()
        self._draining = True
        self._attempt_upload()
        self._close_run_if_idle()

    def retry(self, file_id: str):
        if file_id not in self._queues.failed:
            return
        self._ensure_handler_factory()
        self._mark_as_queued(file_id, front=True)
        self._requested.add(file_id)
        self._attempt_upload()

    def cancel(self, file_id: str):
        if file_id in self._queues.active:
            self._cancel_transfer(file_id)
        elif file_id in self._queues.queued or file_id in self._queues.failed:
            self._mark_as_cancelled(file_id)
            self._check_if_all_complete()

    def cancel_all(self):
        """Cancel every file that has not completed."""
        for file_id in self._registry.get_all_file_ids():
            if file_id in self._queues.queued or file_id in self._queues.failed:
                self._mark_as_cancelled(file_id)

        for file_id in list(self._queues.active):
            self._cancel_transfer(file_id, check=False)

        self._emit(UploaderEvent.CANCEL_ALL)
        self._check_if_all_complete()

    def remove_file(self, file_id: str):
        if file_id in self._queues.active:
            self.cancel(file_id)

        self._registry.remove_file(file_id)

    def remove_all_files(self):
        for file_id in self._registry.get_all_file_ids():
            self.remove_file(file_id)

    def reset(self):
        """Cancel transfers, drop every file and restore the file budget."""
        for file_id in list(self._queues.active):
            self._cancel_transfer(file_id, check=False)

        self._registry.reset()
        self._queues.clear()
        self._ledger.clear()
        self._requested.clear()
        self._draining = self._config.auto_upload

    async def wait(self):
        """Wait until no transfer is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self):
        """Cancel in-flight transfers and wait for their tasks to settle."""
        for file_id in list(self._queues.active):
            self._cancel_transfer(file_id, check=False)
        await self.wait()

    # Queries
    def get_config_value(self, key: str) -> Any:
        return getattr(self._config, key)

    @property
    def config(self) -> UploaderConfig:
        return self._config

    def get_allowed_file_count(self) -> int:
        return self._registry.get_allowed_file_count()

    def set_allowed_file_count(self, count: int):
        self._registry.set_allowed_file_count(count)

    def get_file(self, file_id: str) -> Optional[ManagedFile]:
        return self._registry.get_file(file_id)

    def get_all_file_ids(self) -> List[str]:
        return self._registry.get_all_file_ids()

    def get_queue_state(self) -> Dict[str, List[str]]:
        """Copy of the four queues, keyed by name."""
        return {
            "queued": list(self._queues.queued),
            "active": list(self._queues.active),
            "completed": list(self._queues.completed),
            "failed": list(self._queues.failed),
        }

    def get_file_progress(self, file_id: str) -> Optional[FileProgress]:
        entry = self._ledger.entries.get(file_id)
        return FileProgress(entry.uploaded_bytes, entry.total_bytes) if entry else None

    def get_progress_totals(self) -> Tuple[int, int]:
        """(total_uploaded, total_expected) in bytes."""
        return self._ledger.total_uploaded, self._ledger.total_expected

    def get_total_progress(self) -> float:
        return self._ledger.ratio

    def get_queued_file_count(self) -> int:
        return len(self._queues.queued)

    def get_uploading_file_count(self) -> int:
        return len(self._queues.active)

    def get_uploaded_file_count(self) -> int:
        return len(self._queues.completed)

    def get_failed_file_count(self) -> int:
        return len(self._queues.failed)

    def get_most_recent_active_file_id(self) -> Optional[str]:
        queues = self._queues
        if queues.active:
            return queues.active[-1]
        if queues.completed:
            return queues.completed[-1]
        if queues.failed:
            return queues.failed[-1]
        return queues.queued[0] if queues.queued else None

    def is_complete(self, file_id: Optional[str] = None) -> bool:
        if file_id is None:
            return self._queues.is_complete
        return file_id in self._queues.completed

    def has_started(self) -> bool:
        queues = self._queues
        return bool(queues.active or queues.completed or queues.failed)

    def is_retryable(self, file_id: str) -> bool:
        return file_id in self._queues.failed

    def is_cancellable(self, file_id: str) -> bool:
        return file_id in self._queues.queued or file_id in self._queues.active

    def is_startable(self, file_id: Optional[str] = None) -> bool:
        if file_id is None:
            return not self.has_started()
        return file_id in self._queues.queued or file_id in self._queues.failed

    async def get_thumbnail_url(self, file_id: str, max_size: int) -> str:
        return await self._registry.get_thumbnail_url(file_id, max_size)

    def get_eager_thumbnail_url(self, file_id: str) -> Optional[str]:
        return self._registry.get_eager_thumbnail_url(file_id)

    # Dispatch
    def _ensure_handler_factory(self):
        if self._handler_factory is None:
            raise ConfigurationError("handler_factory is not set; cannot start uploads")

    def _can_upload(self) -> bool:
        queues = self._queues
        if not queues.queued or len(queues.active) >= self._config.allowed_concurrent_upload:
            return False
        return self._draining or queues.queued[0] in self._requested

    def _attempt_upload(self):
        while self._can_upload():
            self._ensure_handler_factory()
            file_id = self._queues.queued[0]
            self._requested.discard(file_id)
            self._dispatch(file_id)

    def _close_run_if_idle(self):
        if self._queues.is_idle and not self._config.auto_upload:
            self._draining = False

    def _dispatch(self, file_id: str):
        try:
            handler = self._handler_factory(
                lambda uploaded, total: self._on_handler_progress(file_id, uploaded, total),
                lambda: self._on_handler_cancel(file_id),
            )
        except Exception as e:
            logger.error(f"Handler factory failed for {file_id}: {e}")
            self._mark_as_failed(file_id, e)
            return

        self._mark_as_started(file_id, handler)
        task = asyncio.get_running_loop().create_task(self._run_transfer(file_id, handler))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_transfer(self, file_id: str, handler: ITransportHandler):
        source = self._registry.get_raw_file(file_id)
        try:
            response = await handler.start(source)
            outcome = TransferOutcome.ok(response)
        except asyncio.CancelledError:
            # Our own task being cancelled only matters while the file still exists
            if self._registry.has_file(file_id):
                raise
            outcome = TransferOutcome.cancelled()
        except Exception as e:
            outcome = TransferOutcome.from_error(e)

        self._settle(file_id, outcome)

    def _settle(self, file_id: str, outcome: TransferOutcome):
        if outcome.kind == OutcomeKind.CANCELLED:
            if not self._registry.has_file(file_id):
                return
            self._mark_as_cancelled(file_id)
        elif file_id not in self._queues.active:
            logger.debug(f"Ignoring late {outcome.kind.value} outcome for {file_id}")
            return
        elif outcome.success:
            self._mark_as_complete(file_id, outcome.response)
        else:
            self._mark_as_failed(file_id, outcome.error)

        self._check_if_all_complete()

    def _check_if_all_complete(self):
        if self._queues.is_complete:
            self._draining = self._config.auto_upload
            logger.info("All uploads complete")
            self._emit(UploaderEvent.TOTAL_PROGRESS, 1)
            self._emit(UploaderEvent.ALL_COMPLETE)
            return

        self._attempt_upload()
        self._close_run_if_idle()

    def _cancel_transfer(self, file_id: str, check: bool = True):
        record = self._registry.get_file(file_id)
        if record is not None and record.handle is not None:
            # Cooperative: a well-behaved handler calls on_cancel from here
            suspended, self._checks_suspended = self._checks_suspended, not check
            try:
                record.handle.cancel()
            finally:
                self._checks_suspended = suspended

        if self._registry.has_file(file_id):
            self._mark_as_cancelled(file_id)
            if check:
                self._check_if_all_complete()

    # Handler callbacks
    def _on_handler_progress(self, file_id: str, uploaded: int, total: int):
        if file_id not in self._queues.active:
            return
        fraction = uploaded / total if total > 0 else 0.0
        self._registry.update_file(file_id, FilePatch(progress=fraction))
        self._update_total_progress(file_id, uploaded, total)

    def _on_handler_cancel(self, file_id: str):
        if file_id not in self._queues.active:
            return
        self._mark_as_cancelled(file_id)
        if not self._checks_suspended:
            self._check_if_all_complete()

    def _update_total_progress(self, file_id: str, uploaded: int, total: int):
        ratio = self._ledger.update(file_id, uploaded, total)
        self._emit(UploaderEvent.TOTAL_PROGRESS, ratio)

    # State transitions
    def _mark_as_queued(self, file_id: str, front: bool = False):
        self._queues.move(file_id, "queued", front=front)
        self._registry.update_file(file_id, FilePatch(status=FileStatus.QUEUED, progress=0.0))
        self._emit(UploaderEvent.QUEUED, file_id)

    def _mark_as_started(self, file_id: str, handler: ITransportHandler):
        self._queues.move(file_id, "active")
        self._registry.update_file(
            file_id, FilePatch(handle=handler, status=FileStatus.STARTED, progress=0.0)
        )
        logger.info(f"Upload started: {file_id}")
        self._emit(UploaderEvent.UPLOAD_STARTED, file_id)

    def _mark_as_complete(self, file_id: str, response: Any):
        self._queues.move(file_id, "completed")
        self._registry.update_file(
            file_id, FilePatch(handle=None, status=FileStatus.COMPLETE, progress=1.0)
        )
        logger.info(f"Upload complete: {file_id}")
        self._emit(UploaderEvent.UPLOAD_SUCCESSFUL, file_id, response)

    def _mark_as_failed(self, file_id: str, error: BaseException):
        self._queues.move(file_id, "failed")
        self._registry.update_file(
            file_id, FilePatch(handle=None, status=FileStatus.FAILED, progress=0.0)
        )
        logger.warning(f"Upload failed: {file_id}: {error}")
        self._emit(UploaderEvent.UPLOAD_FAILED, file_id, error)

    def _mark_as_cancelled(self, file_id: str) -> bool:
        if not self._registry.has_file(file_id):
            return False

        if file_id not in self._queues.completed:
            allowed = self.get_allowed_file_count()
            if allowed != -1:
                self.set_allowed_file_count(allowed + 1)

        self._requested.discard(file_id)
        self._update_total_progress(file_id, -1, -1)
        self._registry.remove_file(file_id)
        logger.info(f"Upload cancelled: {file_id}")
        self._emit(UploaderEvent.UPLOAD_CANCELLED, file_id)
        return True

    # Registry listeners
    def _on_file_accepted(self, file: ManagedFile):
        # Queued and seeded before any listener runs; listeners may remove or cancel the id
        self._queues.move(file.id, "queued")
        self._ledger.update(file.id, 0, file.size)

        self._emit(UploaderEvent.ACCEPTED, file)
        if not self._is_still_queued(file.id):
            return

        self._registry.update_file(file.id, FilePatch(status=FileStatus.QUEUED, progress=0.0))
        self._emit(UploaderEvent.QUEUED, file.id)
        if not self._is_still_queued(file.id):
            return

        self._emit(UploaderEvent.TOTAL_PROGRESS, self._ledger.ratio)
        if self._draining and self._is_still_queued(file.id):
            self._attempt_upload()

    def _is_still_queued(self, file_id: str) -> bool:
        return self._registry.has_file(file_id) and file_id in self._queues.queued

    def _on_file_rejected(self, source: Any, reasons: List[str]):
        self._emit(UploaderEvent.REJECTED, source, reasons)

    def _on_file_removed(self, file_id: str):
        self._queues.discard(file_id)
        self._requested.discard(file_id)
        if self._ledger.retract(file_id):
            self._emit(UploaderEvent.TOTAL_PROGRESS, self._ledger.ratio)
        self._emit(UploaderEvent.REMOVED, file_id)

    def _on_file_changed(self, file_id: str, patch: FilePatch):
        self._emit(UploaderEvent.CHANGED, file_id, patch)

        if patch.has("status"):
            self._emit(UploaderEvent.STATUS_CHANGE, file_id, patch.status)

        if patch.has("progress"):
            self._emit(UploaderEvent.UPLOAD_PROGRESS, file_id, patch.progress)
