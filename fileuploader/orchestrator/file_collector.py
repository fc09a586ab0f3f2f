"""File collection utilities for uploads from the command line."""
from pathlib import Path
from typing import Iterable, List

from ..services.sources import LocalFile


class FileCollector:
    """Collects uploadable files from paths and folders."""

    @staticmethod
    def collect_files(paths: Iterable[Path], include_hidden: bool = False) -> List[LocalFile]:
        """
        Expand paths into LocalFile payloads.

        Folders are walked recursively; files are kept in the order given,
        folder contents are sorted.

        Args:
            paths: Files and/or folders
            include_hidden: Also collect dotfiles inside folders

        Returns:
            List of LocalFile payloads
        """
        files = []
        for path in paths:
            path = Path(path)
            if path.is_file():
                files.append(LocalFile.from_path(path))
            elif path.is_dir():
                for item in sorted(path.rglob("*")):
                    rel_parts = item.relative_to(path).parts
                    if not include_hidden and any(part.startswith(".") for part in rel_parts):
                        continue
                    if item.is_file():
                        files.append(LocalFile.from_path(item))
        return files
