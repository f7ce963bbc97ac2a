from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Protocol


class FileSystemPort(Protocol):
    def exists(self, path: str) -> bool: ...
    def read_text(self, path: str) -> str: ...
    def write_text(self, path: str, text: str) -> None: ...
    def copy(self, src: str, dst: str) -> None: ...
    def move(self, src: str, dst: str) -> None: ...
    def replace(self, src: str, dst: str) -> None: ...
    def delete(self, path: str) -> None: ...
    def ensure_dir(self, path: str) -> None: ...


class LocalFileSystem:
    """Whole-file operations on the local disk."""

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def read_text(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text(self, path: str, text: str) -> None:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())

    def copy(self, src: str, dst: str) -> None:
        shutil.copyfile(src, dst)

    def move(self, src: str, dst: str) -> None:
        os.replace(src, dst)

    def replace(self, src: str, dst: str) -> None:
        os.replace(src, dst)

    def delete(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            return

    def ensure_dir(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)
