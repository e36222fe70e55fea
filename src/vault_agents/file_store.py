"""File store collaborator: the only place that touches note files."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import os
from pathlib import Path, PurePosixPath
import shutil

from .exceptions import FileStoreError

LOGGER = logging.getLogger(__name__)

TRASH_FOLDER = ".trash"


class FileStore(ABC):
    """Vault-relative note storage.

    Paths use ``/`` separators and are relative to the vault root; ``""`` and
    ``"/"`` denote the root folder itself.
    """

    @abstractmethod
    async def exists(self, path: str) -> bool: ...

    @abstractmethod
    async def is_file(self, path: str) -> bool: ...

    @abstractmethod
    async def is_folder(self, path: str) -> bool: ...

    @abstractmethod
    async def read(self, path: str) -> str: ...

    @abstractmethod
    async def create(self, path: str, content: str) -> None: ...

    @abstractmethod
    async def modify(self, path: str, content: str) -> None: ...

    @abstractmethod
    async def move(self, source: str, destination: str) -> None: ...

    @abstractmethod
    async def delete(self, path: str) -> None: ...

    @abstractmethod
    async def list_folder(self, path: str, recursive: bool = False) -> list[str]:
        """List entries under a folder.

        Non-recursive listings return direct children (files and folders);
        recursive listings return every file below the folder.
        """

    @abstractmethod
    async def list_files(self) -> list[str]:
        """Return every file in the vault."""

    @abstractmethod
    async def mtime(self, path: str) -> float: ...


def is_root_folder(path: str) -> bool:
    return path.strip() in ("", "/", ".")


class LocalVaultStore(FileStore):
    """A vault backed by a directory on the local filesystem."""

    def __init__(self, root: str | Path, use_trash: bool = True) -> None:
        self.root = Path(root).expanduser().resolve()
        self.use_trash = use_trash

    def _resolve(self, path: str) -> Path:
        if is_root_folder(path):
            return self.root
        relative = PurePosixPath(path.replace("\\", "/").strip("/"))
        candidate = (self.root / relative).resolve(strict=False)
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise FileStoreError(f"Path escapes the vault: {path}") from exc
        return candidate

    def _relative(self, target: Path) -> str:
        return target.relative_to(self.root).as_posix()

    @staticmethod
    def _is_hidden(relative: str) -> bool:
        return any(part.startswith(".") for part in relative.split("/"))

    async def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    async def is_file(self, path: str) -> bool:
        return self._resolve(path).is_file()

    async def is_folder(self, path: str) -> bool:
        return self._resolve(path).is_dir()

    async def read(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise FileStoreError(f"File not found or is not a file: {path}")
        return target.read_text(encoding="utf-8", errors="replace")

    def _ensure_parent_folders(self, target: Path) -> None:
        parent = target.parent
        for ancestor in reversed([parent, *parent.parents]):
            if ancestor == self.root or self.root not in ancestor.parents:
                continue
            if ancestor.exists() and not ancestor.is_dir():
                raise FileStoreError(
                    f"Path component is not a folder: {self._relative(ancestor)}"
                )
        parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _encode(path: str, content: str) -> bytes:
        # Encode before opening so a bad payload never truncates the note.
        try:
            return content.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise FileStoreError(
                f"Content for {path} cannot be stored as UTF-8: {exc.reason}"
            ) from exc

    async def create(self, path: str, content: str) -> None:
        target = self._resolve(path)
        if target.exists():
            raise FileStoreError(f"Path already exists: {path}")
        data = self._encode(path, content)
        self._ensure_parent_folders(target)
        target.write_bytes(data)
        LOGGER.debug("store.create", extra={"event": "store.create", "path": path})

    async def modify(self, path: str, content: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise FileStoreError(f"File not found or is not a file: {path}")
        target.write_bytes(self._encode(path, content))
        LOGGER.debug("store.modify", extra={"event": "store.modify", "path": path})

    async def move(self, source: str, destination: str) -> None:
        src = self._resolve(source)
        dst = self._resolve(destination)
        if not src.is_file():
            raise FileStoreError(f"Source file not found or is not a file: {source}")
        if dst.exists():
            raise FileStoreError(f"Path already exists: {destination}")
        self._ensure_parent_folders(dst)
        src.rename(dst)
        LOGGER.debug(
            "store.move",
            extra={"event": "store.move", "path": source, "destination": destination},
        )

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        if not target.exists() or target == self.root:
            raise FileStoreError(f"File not found: {path}")
        if self.use_trash:
            trash = self.root / TRASH_FOLDER
            trash.mkdir(exist_ok=True)
            destination = trash / target.name
            counter = 1
            while destination.exists():
                destination = trash / f"{target.stem} {counter}{target.suffix}"
                counter += 1
            shutil.move(str(target), str(destination))
        elif target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()
        LOGGER.debug("store.delete", extra={"event": "store.delete", "path": path})

    async def list_folder(self, path: str, recursive: bool = False) -> list[str]:
        folder = self._resolve(path)
        if not folder.is_dir():
            raise FileStoreError(f"Directory not found or is not a directory: {path}")
        results: list[str] = []
        if recursive:
            for dirpath, dirnames, filenames in os.walk(folder):
                dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
                for name in sorted(filenames):
                    if name.startswith("."):
                        continue
                    results.append(self._relative(Path(dirpath) / name))
        else:
            for child in sorted(folder.iterdir()):
                relative = self._relative(child)
                if not self._is_hidden(relative):
                    results.append(relative)
        return results

    async def list_files(self) -> list[str]:
        return await self.list_folder("", recursive=True)

    async def mtime(self, path: str) -> float:
        target = self._resolve(path)
        try:
            return target.stat().st_mtime
        except OSError as exc:
            raise FileStoreError(f"File not found: {path}") from exc
