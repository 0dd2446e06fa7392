from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class PreviewHistory(Generic[T]):
    """
    Previews generated one at a time, plus a cursor pointing at the one on
    screen.

    `advance` appends and jumps to the end; `step_back` only moves the cursor
    and never regenerates or drops anything. When `max_entries` is set the
    oldest previews are evicted first.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: List[T] = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def entries(self) -> List[T]:
        return list(self._entries)

    @property
    def current(self) -> Optional[T]:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    def advance(self, entry: T) -> T:
        self._entries.append(entry)
        if self.max_entries is not None and len(self._entries) > self.max_entries:
            del self._entries[: len(self._entries) - self.max_entries]
        self._cursor = len(self._entries) - 1
        return entry

    def step_back(self) -> Optional[T]:
        """
        Move one preview back. Returns None, leaving the cursor where it was,
        when there is nothing earlier to show.
        """
        if self._cursor <= 0:
            return None
        self._cursor -= 1
        return self._entries[self._cursor]
