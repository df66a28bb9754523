"""Locked JSON documents on disk.

Every project-level document (workflow progress, shared context) goes
through JsonDocument:

- Atomic writes (temp file in the same directory + rename)
- Advisory fcntl lock on a sibling ``.lock`` file around read-modify-write
- Optional optimistic check: a write carrying an expected token is rejected
  when the on-disk token no longer matches
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from mycontext.core.errors import StaleWriteError

logger = logging.getLogger(__name__)

_MISSING = object()


class JsonDocument:
    """A JSON object stored at ``path``.

    Example:
        >>> doc = JsonDocument(Path(".mycontext/context.json"))
        >>> doc.update(lambda data: data.setdefault("brain", {}))
    """

    def __init__(self, path: Path):
        self.path = path

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(f".{self.path.name}.lock")

    def exists(self) -> bool:
        return self.path.exists()

    @contextlib.contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the exclusive advisory lock for this document."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def read(self) -> dict[str, Any] | None:
        """Read the document; None if absent or not a JSON object.

        Raises:
            json.JSONDecodeError: If the file exists but is not valid JSON
            OSError: If the file cannot be read
        """
        if not self.path.exists():
            return None
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else None

    def write(self, data: dict[str, Any]) -> None:
        """Write the whole document atomically (caller holds the lock)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=".tmp_",
            suffix=".json",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(temp_path, self.path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def save(
        self,
        data: dict[str, Any],
        *,
        token: Callable[[dict[str, Any]], Any] | None = None,
        expected: Any = _MISSING,
    ) -> None:
        """Overwrite the document under the lock.

        When ``token`` and ``expected`` are given, ``token`` applied to the
        current on-disk document (an empty dict when missing or unreadable)
        must equal ``expected``.

        Raises:
            StaleWriteError: If the on-disk token moved since the caller's read
        """
        with self.locked():
            if token is not None and expected is not _MISSING:
                self._check(token, expected)
            self.write(data)

    def update(self, mutate: Callable[[dict[str, Any]], Any]) -> Any:
        """Read, mutate in place and write back under one lock.

        An unreadable document is replaced by an empty object. Returns
        whatever ``mutate`` returns.
        """
        with self.locked():
            try:
                data = self.read() or {}
            except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
                logger.warning("Replacing unreadable document %s: %s", self.path, e)
                data = {}
            result = mutate(data)
            self.write(data)
            return result

    def delete(self) -> bool:
        """Remove the document; True if it existed."""
        with self.locked():
            existed = self.path.exists()
            self.path.unlink(missing_ok=True)
        self.lock_path.unlink(missing_ok=True)
        return existed

    def _check(self, token: Callable[[dict[str, Any]], Any], expected: Any) -> None:
        try:
            current = self.read()
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            current = None
        found = token(current or {})
        if found != expected:
            raise StaleWriteError(str(self.path), expected, found)
