"""
Knowledge Search

Search drivers rank the contents of one knowledge index against a
question. Built-in indexes are ``query_patterns`` and ``learnings``; any
custom index holds free-form documents in the knowledge store.

Drivers:
    - KeywordSearchDriver: in-process keyword overlap scoring
    - PostgresFullTextSearchDriver: to_tsvector / plainto_tsquery / ts_rank
    - NullSearchDriver: never returns anything
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from sqlagent.config import SearchSettings
from sqlagent.knowledge.postgres import PostgresKnowledgeStore
from sqlagent.knowledge.store import KnowledgeStore
from sqlagent.knowledge.text import extract_keywords, prepare_search_term, relevance_score
from sqlagent.models.errors import KnowledgeError
from sqlagent.models.knowledge import Learning, QueryPattern, SearchResult

logger = logging.getLogger(__name__)

BUILTIN_INDEXES = ("query_patterns", "learnings")


def document_text(document: dict[str, Any]) -> str:
    return " ".join(str(value) for value in document.values() if value not in (None, ""))


class SearchDriver(ABC):
    """Ranks items of one index against a query."""

    @abstractmethod
    async def search(self, query: str, index: str, limit: int = 10) -> list[SearchResult]:
        """Return at most ``limit`` results, best first."""


class KeywordSearchDriver(SearchDriver):
    """Keyword overlap ranking over everything in the store."""

    def __init__(self, store: KnowledgeStore):
        self.store = store

    async def search(self, query: str, index: str, limit: int = 10) -> list[SearchResult]:
        keywords = extract_keywords(query)
        if not keywords:
            return []

        candidates: list[tuple[Learning | QueryPattern | dict[str, Any], str]]
        if index == "query_patterns":
            candidates = [(item, item.search_text()) for item in await self.store.list_patterns()]
        elif index == "learnings":
            candidates = [(item, item.search_text()) for item in await self.store.list_learnings()]
        else:
            candidates = [
                (document, document_text(document))
                for document in await self.store.list_documents(index)
            ]

        scored = [
            SearchResult(index=index, item=item, score=relevance_score(keywords, text))
            for item, text in candidates
        ]
        scored.sort(key=lambda result: result.score, reverse=True)
        return [result for result in scored if result.score > 0][:limit]


class PostgresFullTextSearchDriver(SearchDriver):
    """PostgreSQL full-text ranking inside the knowledge database."""

    def __init__(self, store: PostgresKnowledgeStore, language: str = "english"):
        self.store = store
        self.language = language

    async def search(self, query: str, index: str, limit: int = 10) -> list[SearchResult]:
        term = prepare_search_term(query)
        if not term:
            return []
        hits = await self.store.fulltext_search(index, term, limit, self.language)
        return [SearchResult(index=index, item=item, score=score) for item, score in hits]


class NullSearchDriver(SearchDriver):
    async def search(self, query: str, index: str, limit: int = 10) -> list[SearchResult]:
        return []


class SearchManager:
    """
    Front door for knowledge search.

    Validates index names, proxies to the configured driver and merges
    results across indexes.
    """

    def __init__(self, driver: SearchDriver, custom_indexes: list[str] | None = None):
        self.driver = driver
        self._custom_indexes = [
            name for name in (custom_indexes or []) if name not in BUILTIN_INDEXES
        ]

    def registered_indexes(self) -> list[str]:
        return [*BUILTIN_INDEXES, *self._custom_indexes]

    def custom_indexes(self) -> list[str]:
        return list(self._custom_indexes)

    async def search(self, query: str, index: str, limit: int = 10) -> list[SearchResult]:
        if index not in self.registered_indexes():
            raise KnowledgeError(
                f"Unknown search index: {index}. "
                f"Available indexes: {', '.join(self.registered_indexes())}"
            )
        results = await self.driver.search(query, index, limit)
        logger.debug(
            f"Search '{index}' returned {len(results)} results",
            extra={"index": index, "limit": limit, "result_count": len(results)},
        )
        return results

    async def search_multiple(
        self, query: str, indexes: list[str], limit: int = 10
    ) -> list[SearchResult]:
        """Search several indexes and keep the overall best ``limit`` hits."""
        merged: list[SearchResult] = []
        for index in indexes:
            merged.extend(await self.search(query, index, limit))
        merged.sort(key=lambda result: result.score, reverse=True)
        return merged[:limit]


def create_search_manager(settings: SearchSettings, store: KnowledgeStore) -> SearchManager:
    """Build the SearchManager for the configured driver."""
    if settings.driver == "postgres":
        if not isinstance(store, PostgresKnowledgeStore):
            raise ValueError("The postgres search driver requires STORAGE_URL to be set.")
        driver: SearchDriver = PostgresFullTextSearchDriver(store, settings.language)
    elif settings.driver == "null":
        driver = NullSearchDriver()
    else:
        driver = KeywordSearchDriver(store)

    logger.info(f"Search driver: {settings.driver}", extra={"driver": settings.driver})
    return SearchManager(driver, settings.custom_indexes)
