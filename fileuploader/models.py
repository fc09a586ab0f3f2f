"""
Models for fileuploader module.

Managed records are mutable only through FileRegistry.update_file;
everything else here is an immutable value object.
"""
import os
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class ConfigurationError(ValueError):
    """Raised when the uploader is configured in a way it cannot run with."""


class UploadCancelled(Exception):
    """Raised by a transport handler whose transfer was cancelled on request."""

    cancelled = True

    def __init__(self, message: str = "Upload cancelled"):
        super().__init__(message)


class FileStatus(Enum):
    """Lifecycle status of a managed file."""
    ACCEPTED = "accepted"
    QUEUED = "queued"
    STARTED = "started"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ManagedFile:
    """Canonical record of an admitted file, owned by the registry."""
    id: str
    name: str
    size: int
    content_type: str
    category: str
    source: Any = field(repr=False)
    status: FileStatus = FileStatus.ACCEPTED
    progress: float = 0.0
    handle: Optional[Any] = field(default=None, repr=False)

    def apply(self, patch: "FilePatch") -> None:
        for name, value in patch.changes().items():
            setattr(self, name, value)


_UNSET = object()


@dataclass(frozen=True)
class FilePatch:
    """
    Partial update for a ManagedFile.

    Only fields that were passed explicitly are merged; ``handle=None``
    is a real change (it clears the transport handle), while an omitted
    field leaves the stored value untouched.
    """
    status: Any = _UNSET
    progress: Any = _UNSET
    handle: Any = _UNSET

    def changes(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not _UNSET
        }

    def has(self, name: str) -> bool:
        return getattr(self, name, _UNSET) is not _UNSET


class OutcomeKind(Enum):
    """How a transfer settled."""
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TransferOutcome:
    """Tagged result of one transport handler run."""
    kind: OutcomeKind
    response: Any = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @classmethod
    def ok(cls, response: Any = None):
        return cls(kind=OutcomeKind.SUCCESS, response=response)

    @classmethod
    def fail(cls, error: BaseException):
        return cls(kind=OutcomeKind.FAILURE, error=error)

    @classmethod
    def cancelled(cls):
        return cls(kind=OutcomeKind.CANCELLED)

    @classmethod
    def from_error(cls, error: BaseException):
        """Classify an exception raised by a handler's start()."""
        if isinstance(error, UploadCancelled) or getattr(error, "cancelled", False) is True:
            return cls.cancelled()
        return cls.fail(error)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class UploaderConfig:
    """Immutable configuration for a FileUploader session."""
    allowed_concurrent_upload: int = 3
    allowed_file_count: int = -1  # -1 = unlimited
    min_allowed_file_size: int = -1
    max_allowed_file_size: int = -1
    allowed_file_types: Tuple[str, ...] = ()
    multiple: bool = True
    auto_upload: bool = False

    def __post_init__(self):
        # Accept lists for convenience, store a tuple to stay hashable
        if not isinstance(self.allowed_file_types, tuple):
            object.__setattr__(self, "allowed_file_types", tuple(self.allowed_file_types))

        if self.allowed_concurrent_upload < 1:
            raise ConfigurationError(
                f"allowed_concurrent_upload must be >= 1, got {self.allowed_concurrent_upload}"
            )
        for name in ("allowed_file_count", "min_allowed_file_size", "max_allowed_file_size"):
            value = getattr(self, name)
            if value < -1:
                raise ConfigurationError(f"{name} must be -1 (unlimited) or >= 0, got {value}")
        if (
            self.min_allowed_file_size != -1
            and self.max_allowed_file_size != -1
            and self.min_allowed_file_size > self.max_allowed_file_size
        ):
            raise ConfigurationError(
                "min_allowed_file_size cannot be greater than max_allowed_file_size"
            )

    @property
    def is_count_limited(self) -> bool:
        return self.allowed_file_count != -1

    @classmethod
    def from_env(cls, prefix: str = "UPLOADER_", **overrides) -> "UploaderConfig":
        """
        Build a config from environment variables.

        Recognised: {prefix}ALLOWED_CONCURRENT_UPLOAD, {prefix}ALLOWED_FILE_COUNT,
        {prefix}MIN_ALLOWED_FILE_SIZE, {prefix}MAX_ALLOWED_FILE_SIZE,
        {prefix}ALLOWED_FILE_TYPES (comma separated), {prefix}MULTIPLE,
        {prefix}AUTO_UPLOAD. Keyword overrides win over the environment.
        """
        values: Dict[str, Any] = {}
        for name in (
            "allowed_concurrent_upload",
            "allowed_file_count",
            "min_allowed_file_size",
            "max_allowed_file_size",
        ):
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw is None or not raw.strip():
                continue
            try:
                values[name] = int(raw)
            except ValueError as exc:
                raise ConfigurationError(f"{prefix}{name.upper()} must be an integer: {raw!r}") from exc

        raw_types = os.getenv(f"{prefix}ALLOWED_FILE_TYPES")
        if raw_types:
            values["allowed_file_types"] = tuple(t.strip() for t in raw_types.split(",") if t.strip())

        for name in ("multiple", "auto_upload"):
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = _env_bool(raw)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
