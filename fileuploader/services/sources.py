"""Path-backed payloads for the uploader."""
import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Optional

from ..utils.formatting import guess_content_type


@dataclass(frozen=True)
class LocalFile:
    """A file on disk, usable as an IFileSource."""
    path: Path
    name: str
    size: int
    content_type: str = field(default="")

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> "LocalFile":
        path = Path(path)
        return cls(
            path=path,
            name=path.name,
            size=path.stat().st_size,
            content_type=content_type if content_type is not None else guess_content_type(path.name),
        )

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    async def read_chunks(self, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        """Read the file in chunks off the event loop."""
        with open(self.path, "rb") as f:
            while True:
                chunk = await asyncio.to_thread(f.read, chunk_size)
                if not chunk:
                    break
                yield chunk
