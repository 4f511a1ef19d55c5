"""Keyword extraction and word segmentation for relevance matching."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import jieba
import jieba.analyse

logger = logging.getLogger(__name__)

DEFAULT_STOP_WORDS = frozenset(
    {
        "的", "是", "在", "了", "和", "与", "或", "这", "那", "有",
        "个", "我", "你", "他", "她", "它", "们", "吗", "呢", "吧",
        "啊", "哦", "嗯", "呀", "哈", "哪", "什么", "怎么", "为什么",
        "可以", "可能", "应该", "需要", "能够", "已经", "正在",
        "一个", "一些", "这个", "那个", "这些", "那些", "如果",
        "但是", "因为", "所以", "虽然", "然后", "而且", "或者",
        "不是", "没有", "不会", "不能", "还是", "就是", "只是",
    }
)


@runtime_checkable
class Tokenizer(Protocol):
    """Protocol for keyword extraction backends."""

    def extract_keywords(self, text: str, top_k: int) -> list[str]:
        """Return up to ``top_k`` salient keywords, most important first."""
        ...

    def segment(self, text: str) -> list[str]:
        """Return the full word segmentation of ``text`` with noise removed."""
        ...

    def close(self) -> None:
        """Release held resources. Must be idempotent."""
        ...


class JiebaTokenizer:
    """Tokenizer backed by a private jieba dictionary and TF-IDF extractor."""

    def __init__(self, stop_words: frozenset[str] = DEFAULT_STOP_WORDS) -> None:
        self.stop_words = stop_words
        self._jieba: jieba.Tokenizer | None = jieba.Tokenizer()
        self._tfidf: jieba.analyse.TFIDF | None = jieba.analyse.TFIDF()
        self._tfidf.tokenizer = self._jieba

    @property
    def closed(self) -> bool:
        return self._jieba is None

    def _keep(self, word: str) -> bool:
        return word not in self.stop_words and len(word) >= 2

    def extract_keywords(self, text: str, top_k: int) -> list[str]:
        """TF-IDF keywords; over-fetches so stopword filtering still yields top_k."""
        if self._tfidf is None:
            raise RuntimeError("tokenizer is closed")
        result: list[str] = []
        for word in self._tfidf.extract_tags(text, topK=top_k * 2):
            if self._keep(word):
                result.append(word)
                if len(result) >= top_k:
                    break
        return result

    def segment(self, text: str) -> list[str]:
        if self._jieba is None:
            raise RuntimeError("tokenizer is closed")
        words = (w.strip() for w in self._jieba.cut(text, HMM=True))
        return [w for w in words if w and self._keep(w)]

    def close(self) -> None:
        if self._jieba is None:
            return
        self._jieba = None
        self._tfidf = None
        logger.debug("Released jieba dictionary")
