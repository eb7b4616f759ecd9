"""
Line-oriented key/value attribute store.

Entries live in ``<root>/<adapter address>/<category>``, one ``KEY VALUE``
line per entry, sorted by key.  Values may contain spaces; keys may not.
Every access takes an advisory ``flock`` on the file so concurrent daemons
and tools see whole files.
"""

from __future__ import annotations

import fcntl
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Callable, Dict, Iterator, Optional, Tuple, TypeVar, Union

from adapterd.core.errors import InvalidParameterError
from adapterd.core.log import get_logger

logger = get_logger(__name__)

__all__ = ["Scope", "TextFileStore"]

Scope = Tuple[str, str]
A = TypeVar("A")


class TextFileStore:
    """String key/value store scoped by adapter address and category."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_for(self, scope: Scope) -> Path:
        address, category = scope
        return self.root / address / category

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self, scope: Scope, write: bool) -> Iterator[Optional[IO[str]]]:
        path = self.path_for(scope)
        if not write and not path.exists():
            yield None
            return
        if write:
            path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
        with open(path, "a+" if write else "r", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX if write else fcntl.LOCK_SH)
            f.seek(0)
            yield f

    @staticmethod
    def _parse(f: IO[str]) -> Dict[str, str]:
        entries: Dict[str, str] = {}
        for line in f:
            line = line.rstrip("\n")
            if not line:
                continue
            key, _, value = line.partition(" ")
            entries[key] = value
        return entries

    @staticmethod
    def _dump(f: IO[str], entries: Dict[str, str]) -> None:
        f.seek(0)
        f.truncate()
        for key in sorted(entries):
            f.write(f"{key} {entries[key]}\n")
        f.flush()

    def _read(self, scope: Scope) -> Dict[str, str]:
        with self._locked(scope, write=False) as f:
            if f is None:
                return {}
            return self._parse(f)

    # ------------------------------------------------------------------
    # Store operations
    # ------------------------------------------------------------------

    def get(self, scope: Scope, key: str) -> Optional[str]:
        return self._read(scope).get(key)

    def set(self, scope: Scope, key: str, value: str) -> None:
        if not key or " " in key or "\n" in key:
            raise ValueError(f"Invalid store key: {key!r}")
        if "\n" in value:
            raise InvalidParameterError("value", "must be a single line")
        with self._locked(scope, write=True) as f:
            entries = self._parse(f)
            entries[key] = value
            self._dump(f, entries)

    def delete(self, scope: Scope, key: str) -> bool:
        """Remove *key*; returns False when it was not present."""
        if not self.path_for(scope).exists():
            return False
        with self._locked(scope, write=True) as f:
            entries = self._parse(f)
            if key not in entries:
                return False
            del entries[key]
            self._dump(f, entries)
        logger.debug(f"Deleted {key} from {self.path_for(scope)}")
        return True

    def for_each(self, scope: Scope, visit: Callable[[str, str, A], None], accumulator: A) -> A:
        """Call ``visit(key, value, accumulator)`` for every entry, in key order."""
        for key, value in sorted(self._read(scope).items()):
            visit(key, value, accumulator)
        return accumulator
