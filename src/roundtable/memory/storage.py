"""File-backed memory storage with an in-memory cache.

One Markdown file per subject under ``<data_dir>/memories/``. The YAML
frontmatter holds the full record; the body is a readable digest for humans
and is never parsed back.

``load`` returns the cached instance itself, not a copy. Callers that keep a
record across concurrent operations share it with every other loader of the
same code.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Protocol

import frontmatter

from roundtable.errors import DurableIOError, RecordNotFound
from roundtable.memory.types import StockMemory

logger = logging.getLogger(__name__)

_ILLEGAL_CODE = re.compile(r'[<>:"/\\|?*\n\r\t]')


class Storage(Protocol):
    """Keyed durable store for subject memory records."""

    def load(self, code: str) -> StockMemory: ...

    def save(self, mem: StockMemory) -> None: ...

    def delete(self, code: str) -> None: ...

    def list(self) -> list[str]: ...


class ReadWriteLock:
    """Many concurrent readers or one exclusive writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            # Waiting writers go first so a stream of loads cannot starve saves
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class FileStorage:
    """Subject-isolated file storage guarded by a single reader/writer lock."""

    def __init__(self, data_dir: Path) -> None:
        self.dir = Path(data_dir) / "memories"
        self.dir.mkdir(parents=True, exist_ok=True)
        self._cache: dict[str, StockMemory] = {}
        self._lock = ReadWriteLock()

    def _path(self, code: str) -> Path:
        if not code or _ILLEGAL_CODE.search(code) or code in (".", ".."):
            raise ValueError(f"invalid subject code: {code!r}")
        return self.dir / f"{code}.md"

    # ── Serialization ─────────────────────────────────────────

    def _render(self, mem: StockMemory) -> str:
        lines = [f"# {mem.name or mem.code} ({mem.code})", ""]
        if mem.summary:
            lines += ["## 历史摘要", mem.summary, ""]
        if mem.recent_rounds:
            lines.append("## 近期结论")
            for r in mem.recent_rounds:
                ts = datetime.fromtimestamp(r.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
                lines.append(f"- [{ts}] 第{r.round}轮: {r.consensus}")
            lines.append("")
        post = frontmatter.Post("\n".join(lines))
        post.metadata.update(mem.to_dict())
        return frontmatter.dumps(post, sort_keys=False) + "\n"

    def _parse(self, code: str, text: str) -> StockMemory:
        try:
            post = frontmatter.loads(text)
            return StockMemory.from_dict(dict(post.metadata))
        except Exception as e:
            raise DurableIOError(f"corrupt memory record for {code!r}: {e}") from e

    # ── Storage API ───────────────────────────────────────────

    def load(self, code: str) -> StockMemory:
        """Return the cached record, reading it from disk on a miss."""
        with self._lock.read_locked():
            mem = self._cache.get(code)
        if mem is not None:
            return mem

        path = self._path(code)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise RecordNotFound(code) from None
        except OSError as e:
            raise DurableIOError(f"failed to read {path}: {e}") from e

        mem = self._parse(code, text)
        with self._lock.write_locked():
            # A save that landed while we were reading wins over the stale copy
            mem = self._cache.setdefault(code, mem)
        logger.debug("Loaded memory %s from %s", code, path)
        return mem

    def save(self, mem: StockMemory) -> None:
        """Write the whole record, then make it the cached copy."""
        path = self._path(mem.code)
        with self._lock.write_locked():
            try:
                path.write_text(self._render(mem), encoding="utf-8")
            except OSError as e:
                raise DurableIOError(f"failed to write {path}: {e}") from e
            self._cache[mem.code] = mem
        logger.debug("Saved memory %s (%d rounds total)", mem.code, mem.total_rounds)

    def delete(self, code: str) -> None:
        """Evict and remove a record. The eviction stands even if removal fails."""
        path = self._path(code)
        with self._lock.write_locked():
            self._cache.pop(code, None)
            try:
                path.unlink()
            except FileNotFoundError:
                raise RecordNotFound(code) from None
            except OSError as e:
                raise DurableIOError(f"failed to delete {path}: {e}") from e
        logger.info("Deleted memory %s", code)

    def list(self) -> list[str]:
        """Codes of all durable records, regardless of what is cached."""
        try:
            return sorted(p.stem for p in self.dir.iterdir() if p.is_file() and p.suffix == ".md")
        except OSError as e:
            raise DurableIOError(f"failed to list {self.dir}: {e}") from e

    def invalidate(self, code: str) -> None:
        """Drop the cached copy so the next load re-reads the file."""
        with self._lock.write_locked():
            self._cache.pop(code, None)

    def is_cached(self, code: str) -> bool:
        with self._lock.read_locked():
            return code in self._cache
