# Licensed under the Apache License, Version 2.0
import os
from pathlib import Path
from typing import Iterator

from ...ports.filesystem import FilesystemPort


class LocalFS(FilesystemPort):
    """Local filesystem adapter; walks in sorted order so batch runs are reproducible."""

    def walk(self, root: Path) -> Iterator[Path]:
        root = Path(root)
        if root.is_file():
            yield root
            return
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            d = Path(dirpath)
            for name in sorted(filenames):
                yield d / name

    def stat(self, path: Path) -> dict:
        st = path.stat()
        return {
            "path": str(path),
            "size": st.st_size,
            "mtime_ns": getattr(st, "st_mtime_ns", int(st.st_mtime * 1e9)),
        }
