"""
Append-only float64 series backed by fixed-size pages.

Only one page (the "working page") lives in memory at a time. Crossing a
page boundary pushes the working page to a :class:`PageStore` if it was
modified and pulls the requested page back in, so the width history of a
run can grow far beyond what fits in RAM.

Three stores are provided:
    - MemoryPageStore: dict of arrays, for tests and small runs.
    - NpyPageStore: one ``.npy`` file per page in a directory.
    - SqlitePageStore: a single sqlite table keyed by page index.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

import numpy as np

from .errors import OutOfRangeError

logger = logging.getLogger(__name__)

# Largest page the series keeps resident: (2^31 - 1) >> 6 doubles (~256 MiB).
MAX_PAGE_SIZE = (2**31 - 1) >> 6

_NO_PAGE = -1


class PageStore(Protocol):
    """Storage for pages evicted from a :class:`PagedSeries`."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    def push_page(self, page_index: int, values: np.ndarray) -> None: ...

    def pull_page(self, page_index: int) -> np.ndarray: ...

    def clear(self) -> None: ...


class MemoryPageStore:
    """Keeps evicted pages in a dict. Useful for tests."""

    def __init__(self) -> None:
        self._pages: Dict[int, np.ndarray] = {}

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def push_page(self, page_index: int, values: np.ndarray) -> None:
        self._pages[page_index] = np.array(values, dtype=np.float64, copy=True)

    def pull_page(self, page_index: int) -> np.ndarray:
        return self._pages[page_index].copy()

    def clear(self) -> None:
        self._pages.clear()

    def __len__(self) -> int:
        return len(self._pages)


class NpyPageStore:
    """Stores each page as ``page_<index>.npy`` inside ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, page_index: int) -> Path:
        return self.directory / f"page_{page_index:06d}.npy"

    def open(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def close(self) -> None:
        pass

    def push_page(self, page_index: int, values: np.ndarray) -> None:
        np.save(self._path(page_index), np.asarray(values, dtype=np.float64))

    def pull_page(self, page_index: int) -> np.ndarray:
        return np.load(self._path(page_index))

    def clear(self) -> None:
        for path in self.directory.glob("page_*.npy"):
            path.unlink()


class SqlitePageStore:
    """
    Stores pages as float64 blobs in a sqlite table.

    The table is keyed by page index, so re-pushing a page replaces it.
    One connection per store; the series is the only reader and writer.
    """

    TABLE = "width_pages"

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SqlitePageStore is not open")
        return self._conn

    def open(self) -> None:
        if self._conn is not None:
            return
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.execute(
            f"CREATE TABLE IF NOT EXISTS {self.TABLE} "
            "(page INTEGER PRIMARY KEY, size INTEGER NOT NULL, data BLOB NOT NULL)"
        )
        self._conn.commit()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def push_page(self, page_index: int, values: np.ndarray) -> None:
        arr = np.ascontiguousarray(values, dtype=np.float64)
        with self.connection:
            self.connection.execute(
                f"INSERT OR REPLACE INTO {self.TABLE} (page, size, data) VALUES (?, ?, ?)",
                (int(page_index), int(arr.size), arr.tobytes()),
            )

    def pull_page(self, page_index: int) -> np.ndarray:
        row = self.connection.execute(
            f"SELECT size, data FROM {self.TABLE} WHERE page = ?", (int(page_index),)
        ).fetchone()
        if row is None:
            raise KeyError(f"page {page_index} not found in {self.db_path}")
        size, blob = row
        return np.frombuffer(blob, dtype=np.float64, count=size).copy()

    def clear(self) -> None:
        with self.connection:
            self.connection.execute(f"DELETE FROM {self.TABLE}")


PagingCallback = Callable[[str, int], None]
PagingCompletedCallback = Callable[[str, int, float], None]


class PagedSeries:
    """
    Logically unbounded, append-only sequence of floats.

    Values are written with :meth:`append` and read back by index with
    :meth:`get` (or ``series[i]``). Paging in and out happens inside those
    calls; callers never see a half-loaded page.
    """

    def __init__(
        self,
        page_size: int = MAX_PAGE_SIZE,
        store: Optional[PageStore] = None,
    ) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.page_size = int(page_size)
        self.store: PageStore = store if store is not None else MemoryPageStore()
        self.store.open()
        self.store.clear()

        self._page = np.full(self.page_size, np.nan, dtype=np.float64)
        self._current = _NO_PAGE
        self._dirty: set[int] = set()
        self._used: set[int] = set()
        self._length = 0

        self._on_started: Optional[PagingCallback] = None
        self._on_completed: Optional[PagingCompletedCallback] = None

    # ------------------------------------------------------------------ access
    def __len__(self) -> int:
        return self._length

    def append(self, value: float) -> None:
        """Write ``value`` at the next index."""
        page, offset = divmod(self._length, self.page_size)
        self._select(page)
        self._page[offset] = value
        self._dirty.add(page)
        self._length += 1

    def get(self, index: int) -> float:
        if index < 0 or index >= self._length:
            raise OutOfRangeError(
                f"index {index} outside recorded range [0, {self._length})"
            )
        page, offset = divmod(int(index), self.page_size)
        self._select(page)
        return float(self._page[offset])

    def __getitem__(self, index: int) -> float:
        return self.get(index)

    def to_array(self, start: int = 0, stop: Optional[int] = None) -> np.ndarray:
        """Copy ``[start, stop)`` into a new array, paging page by page."""
        stop = self._length if stop is None else min(stop, self._length)
        start = max(0, start)
        out = np.empty(max(0, stop - start), dtype=np.float64)
        pos = start
        while pos < stop:
            page, offset = divmod(pos, self.page_size)
            self._select(page)
            n = min(self.page_size - offset, stop - pos)
            out[pos - start : pos - start + n] = self._page[offset : offset + n]
            pos += n
        return out

    # ------------------------------------------------------------------ paging
    def register_callbacks(
        self,
        on_started: Optional[PagingCallback] = None,
        on_completed: Optional[PagingCompletedCallback] = None,
    ) -> None:
        """Observe paging, e.g. to show progress. No effect on the data."""
        self._on_started = on_started
        self._on_completed = on_completed

    def _select(self, page: int) -> None:
        if page == self._current:
            return
        if self._current != _NO_PAGE and self._current in self._dirty:
            self._page_out(self._current)
        if page in self._used:
            self._page_in(page)
        else:
            # First use: nothing stored yet, skip the round trip.
            self._page.fill(np.nan)
            self._used.add(page)
        self._current = page

    def _page_out(self, page: int) -> None:
        if self._on_started is not None:
            self._on_started("push", page)
        logger.info("push(%d) called", page)
        start = time.perf_counter()

        n = min(self.page_size, self._length - page * self.page_size)
        self.store.push_page(page, self._page[:n])
        self._dirty.discard(page)

        elapsed = time.perf_counter() - start
        logger.info("push(%d) completed in %.3f s", page, elapsed)
        if self._on_completed is not None:
            self._on_completed("push", page, elapsed)

    def _page_in(self, page: int) -> None:
        if self._on_started is not None:
            self._on_started("pull", page)
        logger.info("pull(%d) called", page)
        start = time.perf_counter()

        values = np.asarray(self.store.pull_page(page), dtype=np.float64)
        n = min(values.size, self.page_size)
        self._page[:n] = values[:n]
        self._page[n:] = np.nan

        elapsed = time.perf_counter() - start
        logger.info("pull(%d) read %d records in %.3f s", page, n, elapsed)
        if self._on_completed is not None:
            self._on_completed("pull", page, elapsed)

    # --------------------------------------------------------------- lifecycle
    def flush(self) -> None:
        """Push the working page if it holds unsaved values."""
        if self._current != _NO_PAGE and self._current in self._dirty:
            self._page_out(self._current)

    def clear(self) -> None:
        self.store.clear()
        self._page.fill(np.nan)
        self._current = _NO_PAGE
        self._dirty.clear()
        self._used.clear()
        self._length = 0

    def close(self) -> None:
        self.flush()
        self.store.close()


__all__ = [
    "MAX_PAGE_SIZE",
    "PageStore",
    "MemoryPageStore",
    "NpyPageStore",
    "SqlitePageStore",
    "PagedSeries",
]
