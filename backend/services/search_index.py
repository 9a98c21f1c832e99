"""
Content Search Index - BM25 full-text search over published nodes.

The search tool only sees the SearchIndex interface; BM25ContentIndex is the
bundled implementation (rank_bm25 over title + stripped body). A node matches
when it shares at least one token with the query; matches are ranked by BM25
score, highest first.

Usage:
    from services.search_index import BM25ContentIndex
    index = BM25ContentIndex(repository)
    result = index.query("portuguese cuisine", type_filter=["article"], limit=5)
"""

import html
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from threading import Lock
from typing import List, Optional, Sequence

from rank_bm25 import BM25Okapi

from services.site_data import NODE, Entity, EntityRepository

logger = logging.getLogger(__name__)

# Standard stopwords to filter
STOPWORDS = {
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "been", "being", "have", "has", "had", "do", "does", "did", "will",
    "would", "could", "should", "may", "might", "must", "shall", "can",
    "this", "that", "these", "those", "it", "its", "they", "them", "their",
    "what", "which", "who", "whom", "when", "where", "why", "how",
}

_TAG_RE = re.compile(r"<[^>]+>")


def strip_tags(text: str) -> str:
    """Remove markup and decode entities."""
    if not text:
        return ""
    return html.unescape(_TAG_RE.sub(" ", text)).strip()


def tokenize(text: str) -> List[str]:
    """Lowercase, split on whitespace and punctuation, drop stopwords."""
    tokens = re.findall(r"[a-z0-9]+(?:[-.]?[a-z0-9]+)*", text.lower())
    return [t for t in tokens if t not in STOPWORDS and len(t) > 1]


@dataclass
class SearchHit:
    entity_id: int
    score: float
    # Native excerpt from the index, if it produces one
    excerpt: Optional[str] = None


@dataclass
class SearchResultSet:
    total: int = 0
    hits: List[SearchHit] = field(default_factory=list)
    elapsed_ms: float = 0.0


class SearchIndex(ABC):
    """A full-text index the search tool can query."""

    index_id: str = "content"

    @abstractmethod
    def query(self, keywords: str, type_filter: Optional[Sequence[str]] = None, limit: int = 10) -> SearchResultSet:
        """Ranked matches for keywords, optionally restricted to content types."""

    @abstractmethod
    def is_ready(self) -> bool:
        """True when the index can serve queries."""


class BM25ContentIndex(SearchIndex):
    """BM25 index over the published nodes of a repository.

    Rebuilds itself whenever the repository reports a saved node.
    """

    def __init__(self, repository: EntityRepository, index_id: str = "content"):
        self.index_id = index_id
        self._repository = repository
        self._lock = Lock()
        self._bm25: Optional[BM25Okapi] = None
        self._doc_ids: List[int] = []
        self._doc_bundles: List[str] = []
        self._corpus: List[List[str]] = []
        self._token_sets: List[set] = []

        self.rebuild()
        repository.subscribe(self._on_entity_saved)

    def _on_entity_saved(self, entity: Entity) -> None:
        if entity.entity_type == NODE:
            self.rebuild()

    @staticmethod
    def _document_text(entity: Entity) -> str:
        return f"{entity.label} {strip_tags(entity.body)}"

    def rebuild(self) -> None:
        """Re-index every published node."""
        nodes = self._repository.find(NODE, published=True, sort="id")
        doc_ids = [n.id for n in nodes]
        bundles = [n.bundle for n in nodes]
        corpus = [tokenize(self._document_text(n)) for n in nodes]

        bm25 = None
        if any(corpus):
            bm25 = BM25Okapi(corpus)

        with self._lock:
            self._doc_ids = doc_ids
            self._doc_bundles = bundles
            self._corpus = corpus
            self._token_sets = [set(tokens) for tokens in corpus]
            self._bm25 = bm25

        logger.info(f"Search index {self.index_id}: indexed {len(doc_ids)} published nodes")

    def is_ready(self) -> bool:
        return self._bm25 is not None

    @property
    def count(self) -> int:
        return len(self._doc_ids)

    def query(self, keywords: str, type_filter: Optional[Sequence[str]] = None, limit: int = 10) -> SearchResultSet:
        start = time.perf_counter()
        query_tokens = tokenize(keywords or "")

        with self._lock:
            bm25 = self._bm25
            doc_ids = self._doc_ids
            bundles = self._doc_bundles
            token_sets = self._token_sets

        if bm25 is None or not query_tokens:
            return SearchResultSet(elapsed_ms=(time.perf_counter() - start) * 1000)

        scores = bm25.get_scores(query_tokens)
        wanted = set(query_tokens)
        allowed_types = set(type_filter) if type_filter else None

        matches = []
        for position, doc_id in enumerate(doc_ids):
            if allowed_types is not None and bundles[position] not in allowed_types:
                continue
            if not wanted.intersection(token_sets[position]):
                continue
            matches.append(SearchHit(entity_id=doc_id, score=float(scores[position])))

        # Highest score first, lower id breaks ties
        matches.sort(key=lambda hit: (-hit.score, hit.entity_id))

        return SearchResultSet(
            total=len(matches),
            hits=matches[:limit],
            elapsed_ms=(time.perf_counter() - start) * 1000,
        )
