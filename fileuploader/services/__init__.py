"""Services for fileuploader module."""
from .http_transport import HTTPTransportHandler, http_handler_factory
from .registry import FileRegistry, RegistryEvent
from .sources import LocalFile
from .thumbnail import ThumbnailService
from .validators import DEFAULT_VALIDATORS, validate_file_size, validate_file_type

__all__ = [
    "DEFAULT_VALIDATORS",
    "FileRegistry",
    "HTTPTransportHandler",
    "LocalFile",
    "RegistryEvent",
    "ThumbnailService",
    "http_handler_factory",
    "validate_file_size",
    "validate_file_type",
]
