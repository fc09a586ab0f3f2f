"""
File Registry - admission control and canonical storage for accepted files.

Flow:
1. add_file() runs every validator concurrently against the candidate
2. Rejected candidates are reported and never stored
3. Accepted candidates get a fresh id and a ManagedFile record
4. The record changes only through update_file()
"""
import asyncio
import inspect
import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..models import FilePatch, FileStatus, ManagedFile, UploaderConfig
from ..protocols import Validator
from ..utils.events import EventEmitter
from ..utils.formatting import file_category, generate_id, guess_content_type
from .thumbnail import ThumbnailService
from .validators import DEFAULT_VALIDATORS

logger = logging.getLogger(__name__)


class RegistryEvent(str, Enum):
    """Events emitted by FileRegistry."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REMOVED = "removed"
    CHANGED = "changed"


class FileRegistry:
    """
    Owns every admitted file and the remaining file-count budget.

    Usage:
        registry = FileRegistry(UploaderConfig(max_allowed_file_size=10 * MB))
        registry.on(RegistryEvent.ACCEPTED, lambda file: print(file.id))
        registry.on(RegistryEvent.REJECTED, lambda source, reasons: print(reasons))
        await registry.add_file(LocalFile.from_path(path))
    """

    def __init__(
        self,
        config: Optional[UploaderConfig] = None,
        validators: Sequence[Validator] = DEFAULT_VALIDATORS,
        thumbnails: Optional[ThumbnailService] = None,
    ):
        self._config = config or UploaderConfig()
        self._validators = tuple(validators)
        self._thumbnails = thumbnails or ThumbnailService()
        self._events = EventEmitter()
        self._files: Dict[str, ManagedFile] = {}
        self._thumbnail_urls: Dict[str, str] = {}
        self._issued_ids: set = set()
        self._allowed_file_count = self._config.allowed_file_count

    # Event subscription methods
    def on(self, event: RegistryEvent, callback):
        return self._events.on(RegistryEvent(event).value, callback)

    def off(self, event: RegistryEvent, callback):
        self._events.off(RegistryEvent(event).value, callback)

    def _emit(self, event: RegistryEvent, *args):
        self._events.emit(event.value, *args)

    # Budget
    def get_allowed_file_count(self) -> int:
        return self._allowed_file_count

    def set_allowed_file_count(self, count: int) -> None:
        self._allowed_file_count = count

    def is_filled_up(self) -> bool:
        return self._allowed_file_count == 0

    # Queries
    def get_all_file_ids(self) -> List[str]:
        return list(self._files)

    def get_file(self, file_id: str) -> Optional[ManagedFile]:
        """Return a snapshot of the record; mutate it through update_file()."""
        record = self._files.get(file_id)
        return replace(record) if record is not None else None

    def get_raw_file(self, file_id: str) -> Any:
        record = self._files.get(file_id)
        return record.source if record is not None else None

    def has_file(self, file_id: str) -> bool:
        return file_id in self._files

    def is_empty(self) -> bool:
        return not self._files

    def __len__(self) -> int:
        return len(self._files)

    # Mutations
    async def add_file(self, source: Any) -> Optional[ManagedFile]:
        """
        Validate and admit a candidate.

        Returns:
            Snapshot of the accepted record, or None if the candidate was
            rejected or the registry is filled up
        """
        if self.is_filled_up():
            logger.debug("Registry filled up, ignoring %s", getattr(source, "name", source))
            return None

        reasons = await self._validate(source)
        if reasons:
            logger.warning("Rejected %s: %s", getattr(source, "name", source), "; ".join(reasons))
            self._emit(RegistryEvent.REJECTED, source, reasons)
            return None

        # Budget may have been consumed by a concurrent add while validating
        if self.is_filled_up():
            logger.debug("Registry filled up during validation, dropping %s", getattr(source, "name", source))
            return None

        return self._mark_as_accepted(source)

    def update_file(self, file_id: str, patch: FilePatch) -> bool:
        """Merge the fields set on patch into the stored record."""
        record = self._files.get(file_id)
        if record is None:
            logger.debug("update_file on unknown id %s ignored", file_id)
            return False

        record.apply(patch)
        self._emit(RegistryEvent.CHANGED, file_id, patch)
        return True

    def remove_file(self, file_id: str) -> bool:
        if file_id not in self._files:
            return False

        del self._files[file_id]
        self._thumbnail_urls.pop(file_id, None)
        logger.debug("Removed %s from registry", file_id)
        self._emit(RegistryEvent.REMOVED, file_id)
        return True

    def reset(self) -> None:
        """Remove every file and restore the configured budget."""
        for file_id in list(self._files):
            self.remove_file(file_id)

        self._thumbnail_urls.clear()
        self._allowed_file_count = self._config.allowed_file_count

    # Thumbnails
    async def get_thumbnail_url(self, file_id: str, max_size: int) -> str:
        cached = self._thumbnail_urls.get(file_id)
        if cached:
            return cached

        record = self._files.get(file_id)
        if record is None or record.category != "image":
            return ""

        url = await self._thumbnails.render_source(record.source, max_size)
        # The file may have been removed while rendering
        if url and file_id in self._files:
            self._thumbnail_urls[file_id] = url
        return url

    def get_eager_thumbnail_url(self, file_id: str) -> Optional[str]:
        return self._thumbnail_urls.get(file_id)

    # Internal methods
    async def _validate(self, source: Any) -> List[str]:
        async def run(validator: Validator) -> Optional[str]:
            result = validator(source, self._config)
            if inspect.isawaitable(result):
                result = await result
            return result

        results = await asyncio.gather(*(run(v) for v in self._validators))
        return [reason for reason in results if reason]

    def _new_id(self) -> str:
        file_id = generate_id()
        while file_id in self._issued_ids:
            file_id = generate_id()
        self._issued_ids.add(file_id)
        return file_id

    def _mark_as_accepted(self, source: Any) -> ManagedFile:
        content_type = getattr(source, "content_type", "") or guess_content_type(getattr(source, "name", ""))
        record = ManagedFile(
            id=self._new_id(),
            name=getattr(source, "name", ""),
            size=int(getattr(source, "size", 0)),
            content_type=content_type,
            category=file_category(content_type),
            source=source,
            status=FileStatus.ACCEPTED,
            progress=0.0,
        )

        if self._allowed_file_count > 0:
            self._allowed_file_count -= 1

        self._files[record.id] = record
        logger.info("Accepted %s as %s (%d bytes)", record.name, record.id, record.size)
        self._emit(RegistryEvent.ACCEPTED, replace(record))
        return replace(record)
