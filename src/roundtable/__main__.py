"""Entry point: python -m roundtable <command>

- list                  List subjects with stored memory
- show CODE             Print a subject's summary, facts and recent rounds
- context CODE QUERY    Print the context that would be injected for QUERY
- delete CODE           Delete a subject's memory
"""

from __future__ import annotations

import logging
import sys

from roundtable.config import load_config
from roundtable.errors import RecordNotFound, StorageError
from roundtable.memory.manager import MemoryManager, build_manager

USAGE = """\
Usage: python -m roundtable [list|show|context|delete]
  list                  — List subjects with stored memory
  show CODE             — Print a subject's memory record
  context CODE QUERY    — Print the context built for QUERY
  delete CODE           — Delete a subject's memory"""


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _show(manager: MemoryManager, code: str) -> None:
    mem = manager.get_or_create(code, code)
    print(f"{mem.name} ({mem.code}) — {mem.total_rounds} rounds total")
    if mem.summary:
        print(f"\nSummary:\n{mem.summary}")
    if mem.key_facts:
        print(f"\nKey facts ({len(mem.key_facts)}):")
        for fact in mem.key_facts:
            print(f"  - [{fact.type}] {fact.content} ({fact.source}, w={fact.weight:.2f})")
    if mem.recent_rounds:
        print(f"\nRecent rounds ({len(mem.recent_rounds)}):")
        for r in mem.recent_rounds:
            print(f"  #{r.round} {r.query} → {r.consensus}")


def _dispatch(manager: MemoryManager, cmd: str, args: list[str]) -> int:
    if cmd == "list":
        for code in manager.list_memories():
            print(code)
        return 0
    if cmd == "show" and len(args) == 1:
        _show(manager, args[0])
        return 0
    if cmd == "context" and len(args) >= 2:
        mem = manager.get_or_create(args[0], args[0])
        print(manager.build_context(mem, " ".join(args[1:])), end="")
        return 0
    if cmd == "delete" and len(args) == 1:
        try:
            manager.delete_memory(args[0])
        except RecordNotFound:
            print(f"No memory for {args[0]}", file=sys.stderr)
            return 1
        print(f"Deleted memory for {args[0]}")
        return 0
    print(USAGE)
    return 1


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(USAGE)
        return 1

    config = load_config()
    _setup_logging(config.log_level)

    with build_manager(config) as manager:
        try:
            return _dispatch(manager, argv[0], argv[1:])
        except StorageError as e:
            print(f"Storage error: {e}", file=sys.stderr)
            return 1


if __name__ == "__main__":
    sys.exit(main())
