"""Graph data model for the modules discovered while bundling."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple


class Kind(Enum):
    """Outcome of looking up a single `require("...")` reference."""

    CORE = "core"
    EXCLUDED = "excluded"
    NATIVE = "native"
    REGISTERED = "registered"
    UNRESOLVED = "unresolved"


class Inclusion(Enum):
    """Inclusion state of a module record."""

    INCLUDED = "included"
    EXCLUDED = "excluded"
    NATIVE_EXCLUDED = "native-excluded"


@dataclass(frozen=True)
class Resolution:
    """Decision for one reference; `id` is only set for REGISTERED."""

    kind: Kind
    id: Optional[int] = None
    path: Optional[str] = None

    @property
    def registered(self) -> bool:
        return self.kind is Kind.REGISTERED


@dataclass
class ModuleRecord:
    """
    A module found while bundling.

    Included modules carry their identity. Excluded files and native add-ons
    are recorded with `id` left as None.
    """

    path: str
    id: Optional[int] = None
    source: str = ""
    rewritten: str = ""
    inclusion: Inclusion = Inclusion.INCLUDED


@dataclass(frozen=True)
class Stats:
    """Final, frozen view of a completed traversal."""

    files: Tuple[str, ...] = ()
    addons_excluded: Tuple[str, ...] = ()

    def as_dict(self) -> Dict[str, List[str]]:
        return {
            "files": list(self.files),
            "addonsExcluded": list(self.addons_excluded),
        }


class StatsNotReadyError(RuntimeError):
    """Raised when stats are requested before traversal has completed."""


class ModuleGraph:
    """
    Ordered, deduplicated list of discovered module paths plus the cursor
    that walks it.

    A module's identity is its index in the list. The list only grows; the
    cursor moves forward one file at a time and traversal is complete when
    it reaches the end of the list.
    """

    def __init__(self, entry_path: str, exclude_files: Optional[Iterable[str]] = None):
        entry = os.path.abspath(entry_path)
        self._files: List[str] = [entry]
        self._index: Dict[str, int] = {entry: 0}
        self._excluded: Set[str] = {os.path.abspath(p) for p in (exclude_files or ())}
        self._addons_excluded: List[str] = []
        self._skipped: Dict[str, ModuleRecord] = {}
        self._edges: List[Tuple[int, int]] = []
        self._edge_set: Set[Tuple[int, int]] = set()
        self._cursor = 0
        self._stats: Optional[Stats] = None

    @property
    def entry(self) -> str:
        return self._files[0]

    @property
    def files(self) -> Tuple[str, ...]:
        """Snapshot of the discovered files in identity order."""
        return tuple(self._files)

    @property
    def addons_excluded(self) -> Tuple[str, ...]:
        return tuple(self._addons_excluded)

    @property
    def excluded(self) -> Set[str]:
        return set(self._excluded)

    @property
    def edges(self) -> Tuple[Tuple[int, int], ...]:
        """(origin id, target id) pairs in the order they were rewritten."""
        return tuple(self._edges)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def complete(self) -> bool:
        return self._cursor >= len(self._files)

    def id_of(self, path: str) -> Optional[int]:
        """Return the identity of `path`, or None if it was never discovered."""
        return self._index.get(path)

    def is_excluded(self, path: str) -> bool:
        return path in self._excluded

    def register(self, path: str) -> int:
        """
        Add `path` to the end of the list and return its identity.

        A path that is already present keeps its original identity.
        """
        existing = self._index.get(path)
        if existing is not None:
            return existing
        self._files.append(path)
        new_id = len(self._files) - 1
        self._index[path] = new_id
        return new_id

    def add_addon(self, path: str) -> None:
        """Record a native add-on that cannot be inlined."""
        self._addons_excluded.append(path)

    def skip(self, path: str, inclusion: Inclusion) -> None:
        """Record a referenced file that stays out of the bundle."""
        if path not in self._skipped:
            self._skipped[path] = ModuleRecord(path=path, inclusion=inclusion)

    @property
    def skipped(self) -> Tuple[ModuleRecord, ...]:
        """Files left out of the bundle, in the order they were first referenced."""
        return tuple(self._skipped.values())

    def add_edge(self, origin_id: int, target_id: int) -> None:
        edge = (origin_id, target_id)
        if edge not in self._edge_set:
            self._edge_set.add(edge)
            self._edges.append(edge)

    def get_targets(self, origin_id: int) -> List[int]:
        """Identities referenced from `origin_id`, in rewrite order."""
        return [target for origin, target in self._edges if origin == origin_id]

    def peek(self) -> Optional[str]:
        """Path at the cursor, or None once traversal is complete."""
        if self.complete:
            return None
        return self._files[self._cursor]

    def advance(self) -> int:
        """Move the cursor past the current file and return that file's identity."""
        current = self._cursor
        self._cursor += 1
        return current

    def stats(self) -> Stats:
        """
        Return the frozen stats of a completed traversal.

        Raises:
            StatsNotReadyError: if the cursor has not reached the end of the list.
        """
        if not self.complete:
            raise StatsNotReadyError("Statistics are not yet available.")
        if self._stats is None:
            self._stats = Stats(
                files=tuple(self._files),
                addons_excluded=tuple(self._addons_excluded),
            )
        return self._stats

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: str) -> bool:
        return path in self._index

    def __repr__(self) -> str:
        return (
            f"ModuleGraph(files={len(self._files)}, cursor={self._cursor}, "
            f"edges={len(self._edges)}, addons_excluded={len(self._addons_excluded)})"
        )
