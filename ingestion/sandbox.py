"""
Path Sandbox

Resolves caller-supplied relative paths against a fixed root.

GUARANTEES:
===========
1. A resolved path is a strict descendant of the root (never the root itself)
2. Containment is decided on path components, so a sibling such as
   /app-other never passes for root /app
3. Symlinks are resolved before the containment check
4. Validation performs no writes
"""

from __future__ import annotations
from pathlib import Path
from typing import FrozenSet, Iterable

from dispatch.errors import ExtensionNotAllowedError, PathTraversalError


class PathSandbox:

    def __init__(self, root_dir: str, allowed_extensions: Iterable[str]):
        self._root = Path(root_dir).resolve()
        self._allowed: FrozenSet[str] = frozenset(e.lower() for e in allowed_extensions)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def allowed_extensions(self) -> FrozenSet[str]:
        return self._allowed

    def contains(self, candidate: Path) -> bool:
        if candidate == self._root:
            return False
        try:
            candidate.relative_to(self._root)
        except ValueError:
            return False
        return True

    def resolve(self, requested: str) -> Path:
        """
        Map a requested path to an absolute path under the root.

        Raises PathTraversalError or ExtensionNotAllowedError.
        """
        if not requested or not requested.strip():
            raise PathTraversalError("empty target path")

        relative = requested.strip().lstrip("/\\")
        try:
            candidate = (self._root / relative).resolve()
        except (OSError, ValueError) as e:
            raise PathTraversalError(f"unresolvable path {requested!r}: {e}") from e

        if not self.contains(candidate):
            raise PathTraversalError(f"path traversal detected: {requested}")

        if candidate.suffix.lower() not in self._allowed:
            raise ExtensionNotAllowedError(
                f"file extension not allowed: {candidate.suffix or '(none)'}"
            )
        return candidate
