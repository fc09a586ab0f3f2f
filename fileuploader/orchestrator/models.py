"""Orchestrator data models."""
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from ..utils.events import FileProgress


@dataclass
class UploadQueues:
    """
    Four disjoint, ordered sequences of file ids.

    An id lives in at most one queue at a time; move() and discard()
    keep that true.
    """
    queued: List[str] = field(default_factory=list)
    active: List[str] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def _all(self) -> Iterator[Tuple[str, List[str]]]:
        yield "queued", self.queued
        yield "active", self.active
        yield "completed", self.completed
        yield "failed", self.failed

    def where(self, file_id: str) -> Optional[str]:
        """Name of the queue holding file_id, or None."""
        for name, ids in self._all():
            if file_id in ids:
                return name
        return None

    def discard(self, file_id: str) -> Optional[str]:
        """Remove file_id from whichever queue holds it."""
        for name, ids in self._all():
            if file_id in ids:
                ids.remove(file_id)
                return name
        return None

    def move(self, file_id: str, target: str, front: bool = False) -> None:
        self.discard(file_id)
        ids = getattr(self, target)
        if front:
            ids.insert(0, file_id)
        else:
            ids.append(file_id)

    def clear(self) -> None:
        for _, ids in self._all():
            ids.clear()

    @property
    def is_complete(self) -> bool:
        return (
            not self.queued
            and not self.active
            and not self.failed
            and len(self.completed) > 0
        )

    @property
    def is_idle(self) -> bool:
        return not self.queued and not self.active

    def __contains__(self, file_id: str) -> bool:
        return self.where(file_id) is not None

    def __len__(self) -> int:
        return sum(len(ids) for _, ids in self._all())


@dataclass
class ProgressLedger:
    """
    Per-file and aggregate byte progress.

    total_uploaded and total_expected always equal the sums over entries.
    """
    entries: Dict[str, FileProgress] = field(default_factory=dict)
    total_uploaded: int = 0
    total_expected: int = 0

    def update(self, file_id: str, uploaded: int, total: int) -> float:
        """
        Record a progress report and return the aggregate ratio.

        The first report for an id seeds its entry and adds total to the
        expected bytes; later reports apply only the uploaded delta.
        uploaded == -1 retracts the id from the ledger.
        """
        if uploaded == -1:
            self.retract(file_id)
            return self.ratio

        entry = self.entries.get(file_id)
        if entry is None:
            entry = FileProgress(uploaded_bytes=max(uploaded, 0), total_bytes=total)
            self.entries[file_id] = entry
            self.total_expected += total
            self.total_uploaded += entry.uploaded_bytes
            return self.ratio

        self.total_uploaded += uploaded - entry.uploaded_bytes
        entry.uploaded_bytes = uploaded
        return self.ratio

    def retract(self, file_id: str) -> bool:
        entry = self.entries.pop(file_id, None)
        if entry is None:
            return False
        self.total_uploaded -= entry.uploaded_bytes
        self.total_expected -= entry.total_bytes
        return True

    def clear(self) -> None:
        self.entries.clear()
        self.total_uploaded = 0
        self.total_expected = 0

    @property
    def ratio(self) -> float:
        return self.total_uploaded / max(self.total_expected, 1)

    def __contains__(self, file_id: str) -> bool:
        return file_id in self.entries
