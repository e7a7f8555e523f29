"""Immutable, content-addressed source tree snapshots.

A ``SourceTree`` is a value: every "modification" returns a new tree and
the original is never touched. Identity is the ``digest``, computed over
the sorted ``(path, sha256(content), executable)`` triples.
"""

from __future__ import annotations

import fnmatch
import os
import stat
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator

from harborline.core.hasher import content_address, sha256_hex


def normalize_path(path: str) -> str:
    """Normalise a tree-relative POSIX path, rejecting escapes.

    ``./dist/index.html`` becomes ``dist/index.html``.  Absolute paths and
    ``..`` segments raise ``ValueError``.
    """
    raw = path.replace("\\", "/")
    if raw.startswith("/"):
        raise ValueError(f"Tree paths must be relative, got {path!r}")
    parts = [p for p in PurePosixPath(raw).parts if p not in ("", ".")]
    if any(p == ".." for p in parts):
        raise ValueError(f"Tree paths must not contain '..', got {path!r}")
    return "/".join(parts)


class FileEntry(BaseModel):
    """A single file in a SourceTree."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: bytes
    executable: bool = False

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        normalized = normalize_path(value)
        if not normalized:
            raise ValueError("File path must not be empty")
        return normalized

    @property
    def content_hash(self) -> str:
        return sha256_hex(self.content)

    @property
    def parts(self) -> tuple[str, ...]:
        return tuple(self.path.split("/"))


class SourceTree(BaseModel):
    """Immutable snapshot of a file hierarchy, identified by content."""

    model_config = ConfigDict(frozen=True)

    files: tuple[FileEntry, ...] = ()

    _digest: str = PrivateAttr(default="")

    @field_validator("files")
    @classmethod
    def _sort_and_check(cls, value: tuple[FileEntry, ...]) -> tuple[FileEntry, ...]:
        ordered = tuple(sorted(value, key=lambda f: f.path))
        seen: set[str] = set()
        for entry in ordered:
            if entry.path in seen:
                raise ValueError(f"Duplicate path in tree: {entry.path!r}")
            seen.add(entry.path)
        return ordered

    def model_post_init(self, __context: Any) -> None:
        self._digest = content_address(
            [[f.path, f.content_hash, f.executable] for f in self.files]
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls) -> SourceTree:
        return cls()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, bytes | str]) -> SourceTree:
        """Build a tree from ``{path: content}``; ``str`` content is UTF-8 encoded."""
        return cls(
            files=tuple(
                FileEntry(
                    path=path,
                    content=data.encode("utf-8") if isinstance(data, str) else data,
                )
                for path, data in mapping.items()
            )
        )

    @classmethod
    def from_path(
        cls, root: Path | str, exclude: Iterable[str] = ()
    ) -> SourceTree:
        """Snapshot a directory on disk.

        *exclude* holds name patterns (``fnmatch`` syntax, e.g. ``.git`` or
        ``.env.*``).  A matching directory prunes its whole subtree.
        Symlinks are not followed.
        """
        root = Path(root)
        if not root.is_dir():
            raise NotADirectoryError(f"Source directory not found: {root}")
        patterns = tuple(exclude)

        def skipped(name: str) -> bool:
            return any(fnmatch.fnmatchcase(name, p) for p in patterns)

        entries: list[FileEntry] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if not skipped(d))
            for name in sorted(filenames):
                if skipped(name):
                    continue
                full = Path(dirpath) / name
                if full.is_symlink() or not full.is_file():
                    continue
                mode = full.stat().st_mode
                entries.append(
                    FileEntry(
                        path=full.relative_to(root).as_posix(),
                        content=full.read_bytes(),
                        executable=bool(mode & stat.S_IXUSR),
                    )
                )
        return cls(files=tuple(entries))

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def digest(self) -> str:
        """Content address of the tree: ``sha256:<hex>``."""
        return self._digest

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            normalized = normalize_path(path)
        except ValueError:
            return False
        return any(f.path == normalized for f in self.files)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def has_directory(self, name: str) -> bool:
        """Whether any directory segment in the tree is called *name*."""
        return any(name in f.parts[:-1] for f in self.files)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def file(self, path: str) -> bytes:
        normalized = normalize_path(path)
        for entry in self.files:
            if entry.path == normalized:
                return entry.content
        raise FileNotFoundError(f"No such file in tree: {path}")

    def directory(self, subpath: str) -> SourceTree:
        """Return the sub-tree under *subpath*, re-rooted at that directory.

        Raises ``FileNotFoundError`` when nothing lives under *subpath*.
        """
        prefix = normalize_path(subpath)
        if not prefix:
            return self
        entries = [
            FileEntry(
                path=f.path[len(prefix) + 1:],
                content=f.content,
                executable=f.executable,
            )
            for f in self.files
            if f.path.startswith(prefix + "/")
        ]
        if not entries:
            raise FileNotFoundError(f"No such directory in tree: {subpath}")
        return SourceTree(files=tuple(entries))

    # ------------------------------------------------------------------
    # Derivations (always return a new tree)
    # ------------------------------------------------------------------

    def with_file(
        self, path: str, content: bytes | str, *, executable: bool = False
    ) -> SourceTree:
        data = content.encode("utf-8") if isinstance(content, str) else content
        new_entry = FileEntry(path=path, content=data, executable=executable)
        kept = [f for f in self.files if f.path != new_entry.path]
        return SourceTree(files=(*kept, new_entry))

    def without_file(self, path: str) -> SourceTree:
        normalized = normalize_path(path)
        return SourceTree(files=tuple(f for f in self.files if f.path != normalized))

    def without_directory(self, name: str) -> SourceTree:
        """Drop every directory called *name*, at any depth, with its contents."""
        return SourceTree(
            files=tuple(f for f in self.files if name not in f.parts[:-1])
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, dest: Path | str) -> Path:
        """Write the tree beneath *dest* (created if missing) and return it."""
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        for entry in self.files:
            target = dest / entry.path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(entry.content)
            if entry.executable:
                target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return dest

    def __repr__(self) -> str:
        return f"<SourceTree files={len(self.files)} digest={self.digest[:19]}>"
