"""Tests for file-backed memory storage and its cache."""

from __future__ import annotations

import threading
from pathlib import Path

import frontmatter
import pytest

from roundtable.errors import DurableIOError, RecordNotFound
from roundtable.memory.storage import FileStorage, ReadWriteLock
from roundtable.memory.types import MemoryEntry, RoundMemory, StockMemory


@pytest.fixture
def storage(tmp_path: Path) -> FileStorage:
    return FileStorage(tmp_path)


def make_memory(code: str = "600519", name: str = "贵州茅台") -> StockMemory:
    return StockMemory(
        code=code,
        name=name,
        summary="前几轮讨论认为估值偏高。\n分歧在于渠道库存。",
        key_facts=[
            MemoryEntry(
                id="mem_000000000001",
                type="decision",
                content="维持观望评级",
                source="策略分析师",
                keywords=["观望", "评级"],
                timestamp=1_700_000_000_000,
                weight=0.9,
            )
        ],
        recent_rounds=[
            RoundMemory(
                round=4,
                query="现在适合买入吗？",
                consensus="等待回调",
                key_points=["估值: 偏高", "资金面: 中性"],
                timestamp=1_700_000_100_000,
            )
        ],
        total_rounds=4,
        created_at=1_699_000_000_000,
        updated_at=1_700_000_200_000,
    )


class TestInit:
    def test_creates_memories_dir(self, storage: FileStorage, tmp_path: Path):
        assert storage.dir == tmp_path / "memories"
        assert storage.dir.is_dir()


class TestSaveLoad:
    def test_round_trip_without_cache(self, storage: FileStorage):
        mem = make_memory()
        storage.save(mem)
        storage.invalidate(mem.code)

        loaded = storage.load(mem.code)
        assert loaded == mem
        assert loaded is not mem

    def test_round_trip_in_new_instance(self, storage: FileStorage, tmp_path: Path):
        mem = make_memory()
        storage.save(mem)
        assert FileStorage(tmp_path).load(mem.code) == mem

    def test_load_returns_cached_instance(self, storage: FileStorage):
        mem = make_memory()
        storage.save(mem)
        assert storage.load(mem.code) is mem
        assert storage.load(mem.code) is storage.load(mem.code)

    def test_load_populates_cache(self, storage: FileStorage, tmp_path: Path):
        storage.save(make_memory())
        fresh = FileStorage(tmp_path)
        assert not fresh.is_cached("600519")
        fresh.load("600519")
        assert fresh.is_cached("600519")

    def test_save_during_load_is_not_overwritten(self, storage: FileStorage, monkeypatch):
        storage.save(make_memory())
        storage.invalidate("600519")
        newer = make_memory()
        newer.total_rounds = 5

        parse = storage._parse

        def parse_then_save(code: str, text: str) -> StockMemory:
            stale = parse(code, text)
            # Runs between the disk read and the cache fill
            storage.save(newer)
            return stale

        monkeypatch.setattr(storage, "_parse", parse_then_save)
        assert storage.load("600519") is newer
        monkeypatch.undo()
        assert storage.load("600519").total_rounds == 5

    def test_save_replaces_cache_entry(self, storage: FileStorage):
        storage.save(make_memory())
        replacement = make_memory(name="Moutai")
        storage.save(replacement)
        assert storage.load("600519") is replacement

    def test_file_has_frontmatter_fields(self, storage: FileStorage):
        storage.save(make_memory())
        post = frontmatter.load(str(storage.dir / "600519.md"))
        assert post.metadata["code"] == "600519"
        assert post.metadata["total_rounds"] == 4
        assert post.metadata["key_facts"][0]["type"] == "decision"
        assert "贵州茅台" in post.content

    def test_numeric_code_stays_string(self, storage: FileStorage):
        mem = make_memory(code="000001")
        storage.save(mem)
        storage.invalidate("000001")
        assert storage.load("000001").code == "000001"

    def test_empty_record_round_trip(self, storage: FileStorage):
        mem = StockMemory(code="AAA", name="", created_at=1, updated_at=2)
        storage.save(mem)
        storage.invalidate("AAA")
        assert storage.load("AAA") == mem


class TestLoadErrors:
    def test_missing_record(self, storage: FileStorage):
        with pytest.raises(RecordNotFound):
            storage.load("nope")

    def test_corrupt_record(self, storage: FileStorage):
        (storage.dir / "bad.md").write_text("no frontmatter here", encoding="utf-8")
        with pytest.raises(DurableIOError):
            storage.load("bad")
        assert not storage.is_cached("bad")

    def test_invalid_code(self, storage: FileStorage):
        with pytest.raises(ValueError):
            storage.load("../escape")
        with pytest.raises(ValueError):
            storage.load("")


class TestSaveErrors:
    def test_write_failure_leaves_cache_untouched(self, storage: FileStorage):
        mem = make_memory()
        storage.dir.rmdir()
        with pytest.raises(DurableIOError):
            storage.save(mem)
        assert not storage.is_cached(mem.code)


class TestDelete:
    def test_delete_removes_file_and_cache(self, storage: FileStorage):
        storage.save(make_memory())
        storage.delete("600519")
        assert not (storage.dir / "600519.md").exists()
        assert not storage.is_cached("600519")
        with pytest.raises(RecordNotFound):
            storage.load("600519")

    def test_delete_missing(self, storage: FileStorage):
        with pytest.raises(RecordNotFound):
            storage.delete("nope")

    def test_failed_delete_still_evicts_cache(self, storage: FileStorage):
        mem = make_memory()
        storage.save(mem)
        (storage.dir / "600519.md").unlink()
        with pytest.raises(RecordNotFound):
            storage.delete("600519")
        assert not storage.is_cached("600519")


class TestList:
    def test_empty(self, storage: FileStorage):
        assert storage.list() == []

    def test_lists_durable_records_only(self, storage: FileStorage):
        storage.save(make_memory("600519"))
        storage.save(make_memory("000001"))
        (storage.dir / "notes.txt").write_text("ignored", encoding="utf-8")
        assert storage.list() == ["000001", "600519"]

    def test_independent_of_cache(self, storage: FileStorage):
        storage.save(make_memory())
        storage.invalidate("600519")
        assert storage.list() == ["600519"]


class TestReadWriteLock:
    def test_readers_share(self):
        lock = ReadWriteLock()
        with lock.read_locked():
            acquired = threading.Event()

            def reader():
                with lock.read_locked():
                    acquired.set()

            t = threading.Thread(target=reader)
            t.start()
            assert acquired.wait(timeout=1)
            t.join()

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        acquired = threading.Event()

        def reader():
            with lock.read_locked():
                acquired.set()

        with lock.write_locked():
            t = threading.Thread(target=reader)
            t.start()
            assert not acquired.wait(timeout=0.1)
        assert acquired.wait(timeout=1)
        t.join()

    def test_concurrent_saves_and_loads(self, storage: FileStorage):
        errors: list[Exception] = []

        def worker(i: int):
            try:
                code = f"S{i % 3}"
                storage.save(make_memory(code))
                assert storage.load(code).code == code
            except Exception as e:  # pragma: no cover - surfaced below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert storage.list() == ["S0", "S1", "S2"]
