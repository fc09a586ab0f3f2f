"""
Protocols (Interfaces) for Dependency Inversion.

The engine only talks to payloads, validators and transports through
these small interfaces; callers plug in their own implementations.
"""
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from .models import UploaderConfig


@runtime_checkable
class IFileSource(Protocol):
    """Interface for a raw payload handed to the uploader."""

    name: str
    size: int
    content_type: str

    def read_chunks(self, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        """Yield the payload in chunks."""
        ...

    def read_bytes(self) -> bytes:
        """Return the whole payload."""
        ...


@runtime_checkable
class ITransportHandler(Protocol):
    """Interface for a single in-flight transfer."""

    async def start(self, source: Any) -> Any:
        """Transfer the payload; return the response or raise."""
        ...

    def cancel(self) -> None:
        """Request cooperative cancellation of the transfer."""
        ...


ProgressCallback = Callable[[int, int], None]
CancelCallback = Callable[[], None]

# factory(on_progress, on_cancel) -> handler; called once per dispatched file
HandlerFactory = Callable[[ProgressCallback, CancelCallback], ITransportHandler]

# validator(candidate, config) -> rejection reason or None
Validator = Callable[[Any, UploaderConfig], Union[Optional[str], Awaitable[Optional[str]]]]
