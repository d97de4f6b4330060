from __future__ import annotations

import logging
from pathlib import Path

from automode.errors import ToolRuntimeError
from automode.services.file_service import FileService

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE_KB = 100


class LocalService(FileService):
    """FileService over the local disk, confined to ``work_dir``."""

    def __init__(
        self,
        work_dir: Path | None = None,
        max_file_size_kb: int = DEFAULT_MAX_FILE_SIZE_KB,
    ) -> None:
        self.work_dir = (work_dir or Path.cwd()).resolve()
        self.max_file_size_kb = max_file_size_kb

    def resolve(self, path: str) -> Path:
        """Resolve path relative to work_dir; refuse anything that escapes it."""
        p = Path(path)
        resolved = (p if p.is_absolute() else self.work_dir / p).resolve()
        if resolved != self.work_dir and self.work_dir not in resolved.parents:
            raise ToolRuntimeError(f"path escapes the working directory: {path}")
        return resolved

    def read_file(self, path: str) -> str:
        p = self.resolve(path)
        if not p.is_file():
            raise ToolRuntimeError(f"file not found: {path}")
        size = p.stat().st_size
        if size > self.max_file_size_kb * 1024:
            raise ToolRuntimeError(
                f"{path} is {size / 1024:.1f} KB, over the {self.max_file_size_kb} KB limit; "
                "search it with grep instead"
            )
        try:
            return p.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ToolRuntimeError(f"{path} is not a UTF-8 text file") from e

    def write_file(self, path: str, content: str) -> None:
        p = self.resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        logger.info("Written: %s (%d lines)", path, content.count("\n") + 1)

    def make_directory(self, path: str) -> None:
        self.resolve(path).mkdir(parents=True, exist_ok=True)

    def list_directory(self, path: str = ".") -> list[str]:
        p = self.resolve(path)
        if not p.is_dir():
            raise ToolRuntimeError(f"not a directory: {path}")
        return sorted(entry.name + ("/" if entry.is_dir() else "") for entry in p.iterdir())

    def file_exists(self, path: str) -> bool:
        return self.resolve(path).exists()
