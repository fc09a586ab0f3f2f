"""
fileuploader - bounded-concurrency upload orchestration.

A FileRegistry validates and stores files; a FileUploader schedules their
transfers through a pluggable transport handler, tracks per-file and
overall progress, and supports cancel/retry and a maximum file count.

Usage:
    from fileuploader import FileUploader, UploaderConfig, LocalFile, http_handler_factory

    config = UploaderConfig(allowed_concurrent_upload=2, max_allowed_file_size=50 * 1024 * 1024)
    async with FileUploader(config, http_handler_factory("https://example.com/upload")) as uploader:
        uploader.on_rejected(lambda source, reasons: print(source.name, reasons))
        uploader.on_total_progress(lambda ratio: print(f"{ratio:.0%}"))

        await uploader.add_files([LocalFile.from_path(p) for p in paths])
        uploader.start_all()
        await uploader.wait()

    # Custom transports implement start(source) / cancel()
    def factory(on_progress, on_cancel):
        return MyHandler(on_progress, on_cancel)
"""
from .models import (
    ConfigurationError,
    FilePatch,
    FileStatus,
    ManagedFile,
    OutcomeKind,
    TransferOutcome,
    UploadCancelled,
    UploaderConfig,
)
from .orchestrator import FileUploader, UploaderEvent
from .protocols import HandlerFactory, IFileSource, ITransportHandler, Validator
from .services import (
    FileRegistry,
    HTTPTransportHandler,
    LocalFile,
    RegistryEvent,
    ThumbnailService,
    http_handler_factory,
)
from .utils.events import EventEmitter, Subscription

__version__ = "0.1.0"
__all__ = [
    # Main
    "FileUploader",
    "UploaderEvent",
    "FileRegistry",
    "RegistryEvent",
    # Models
    "ConfigurationError",
    "FilePatch",
    "FileStatus",
    "ManagedFile",
    "OutcomeKind",
    "TransferOutcome",
    "UploadCancelled",
    "UploaderConfig",
    # Protocols
    "HandlerFactory",
    "IFileSource",
    "ITransportHandler",
    "Validator",
    # Services
    "HTTPTransportHandler",
    "LocalFile",
    "ThumbnailService",
    "http_handler_factory",
    # Events
    "EventEmitter",
    "Subscription",
]
