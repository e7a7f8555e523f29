"""Editable workspace handed to a coding agent.

A ``Workspace`` wraps a SourceTree and exposes the editing tools an agent
may call.  Edits accumulate on the workspace; the input tree is never
changed, and ``source()`` snapshots the current state as a new tree.
"""

from __future__ import annotations

import logging

from harborline.models.source import SourceTree, normalize_path

logger = logging.getLogger(__name__)

# Reads larger than this are truncated before reaching the model
MAX_READ_BYTES = 64_000


class Workspace:
    """Mutable editing surface over an immutable SourceTree.

    Parameters
    ----------
    tree:
        The starting snapshot.
    """

    def __init__(self, tree: SourceTree) -> None:
        self._tree = tree
        self.edits = 0

    def source(self) -> SourceTree:
        """Snapshot the workspace as an immutable tree."""
        return self._tree

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def list_files(self, prefix: str = "") -> list[str]:
        """List file paths, optionally under a directory *prefix*."""
        base = normalize_path(prefix)
        if not base:
            return self._tree.paths
        return [p for p in self._tree.paths if p == base or p.startswith(base + "/")]

    def read_file(self, path: str) -> str:
        """Return a file's text (UTF-8, undecodable bytes replaced)."""
        data = self._tree.file(path)
        text = data[:MAX_READ_BYTES].decode("utf-8", errors="replace")
        if len(data) > MAX_READ_BYTES:
            text += f"\n... [truncated, {len(data)} bytes total]"
        return text

    def write_file(self, path: str, content: str) -> str:
        """Create or replace a file."""
        self._tree = self._tree.with_file(path, content)
        self.edits += 1
        logger.debug("workspace write %s (%d bytes)", path, len(content))
        return f"wrote {normalize_path(path)}"

    def delete_file(self, path: str) -> str:
        if path not in self._tree:
            raise FileNotFoundError(f"No such file in workspace: {path}")
        self._tree = self._tree.without_file(path)
        self.edits += 1
        logger.debug("workspace delete %s", path)
        return f"deleted {normalize_path(path)}"

    def __repr__(self) -> str:
        return f"<Workspace files={len(self._tree)} edits={self.edits}>"
