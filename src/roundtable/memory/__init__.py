"""Subject-scoped discussion memory.

Layout:
    <data_dir>/
    └── memories/
        └── 600519.md       # one record per subject: YAML frontmatter + digest

Each record keeps a running summary, a bounded FIFO list of key facts and the
most recent discussion rounds. Older rounds are folded into the summary once
``compress_threshold`` rounds accumulate.
"""

from roundtable.memory.manager import MemoryManager, build_manager
from roundtable.memory.relevance import Relevance
from roundtable.memory.storage import FileStorage, Storage
from roundtable.memory.summarizer import LLMSummarizer, Summarizer
from roundtable.memory.tokenizer import JiebaTokenizer, Tokenizer
from roundtable.memory.types import DiscussionInput, MemoryEntry, RoundMemory, StockMemory

__all__ = [
    "DiscussionInput",
    "FileStorage",
    "JiebaTokenizer",
    "LLMSummarizer",
    "MemoryEntry",
    "MemoryManager",
    "Relevance",
    "RoundMemory",
    "StockMemory",
    "Storage",
    "Summarizer",
    "Tokenizer",
    "build_manager",
]
