"""
Knowledge Module

Storage and search for learnings, validated query patterns and custom
knowledge documents.
"""

from sqlagent.knowledge.postgres import PostgresKnowledgeStore
from sqlagent.knowledge.search import (
    BUILTIN_INDEXES,
    KeywordSearchDriver,
    NullSearchDriver,
    PostgresFullTextSearchDriver,
    SearchDriver,
    SearchManager,
    create_search_manager,
)
from sqlagent.knowledge.store import InMemoryKnowledgeStore, KnowledgeStore

__all__ = [
    "BUILTIN_INDEXES",
    "InMemoryKnowledgeStore",
    "KeywordSearchDriver",
    "KnowledgeStore",
    "NullSearchDriver",
    "PostgresFullTextSearchDriver",
    "PostgresKnowledgeStore",
    "SearchDriver",
    "SearchManager",
    "create_search_manager",
]
