"""Abstract file service interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class FileService(ABC):
    work_dir: Path

    @abstractmethod
    def read_file(self, path: str) -> str: ...

    @abstractmethod
    def write_file(self, path: str, content: str) -> None: ...

    @abstractmethod
    def make_directory(self, path: str) -> None: ...

    @abstractmethod
    def list_directory(self, path: str = ".") -> list[str]: ...

    @abstractmethod
    def file_exists(self, path: str) -> bool: ...

    @abstractmethod
    def resolve(self, path: str) -> Path: ...
