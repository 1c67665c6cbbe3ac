"""Natural-key duplicate detection for one import batch."""

import enum
from collections.abc import Hashable, Iterable


class DuplicateKind(str, enum.Enum):
    """Why a candidate key was refused."""

    EXISTING = "existing"
    IN_FILE = "in_file"


class DedupGuard:
    """Tracks natural keys of one entity kind during a batch.

    Keys loaded from storage at batch start are "existing". A candidate key is
    reserved while its write is in flight, then committed when the write
    succeeds or released when it fails, so a failed write never hides a later
    row carrying the same key.
    """

    def __init__(self, existing: Iterable[Hashable]):
        self.existing: set[Hashable] = set(existing)
        self.committed: set[Hashable] = set()
        self.pending: set[Hashable] = set()

    def check(self, key: Hashable) -> DuplicateKind | None:
        if key in self.existing:
            return DuplicateKind.EXISTING
        if key in self.committed or key in self.pending:
            return DuplicateKind.IN_FILE
        return None

    def reserve(self, key: Hashable) -> None:
        self.pending.add(key)

    def commit(self, key: Hashable) -> None:
        self.pending.discard(key)
        self.committed.add(key)

    def release(self, key: Hashable) -> None:
        self.pending.discard(key)
