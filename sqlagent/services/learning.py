"""
Learning Machine

Records learnings (manual and auto-generated from SQL errors), searches
them, and keeps the collection tidy by pruning stale entries and removing
duplicates.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlagent.config import LearningSettings
from sqlagent.knowledge.search import SearchManager
from sqlagent.knowledge.store import KnowledgeStore
from sqlagent.models.knowledge import Learning, LearningCategory
from sqlagent.services.error_analyzer import ErrorAnalyzer

logger = logging.getLogger(__name__)

AUTO_LEARNED = "auto_learned"
MANUAL = "manual"


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class LearningMachine:
    """Creates and maintains learnings in the knowledge store."""

    def __init__(
        self,
        settings: LearningSettings,
        store: KnowledgeStore,
        search: SearchManager,
        analyzer: ErrorAnalyzer | None = None,
    ):
        self.settings = settings
        self.store = store
        self.search_manager = search
        self.analyzer = analyzer or ErrorAnalyzer()

    async def save(
        self,
        title: str,
        description: str,
        category: LearningCategory,
        sql: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Learning:
        metadata = dict(metadata or {})
        metadata.setdefault("source", MANUAL)
        learning = await self.store.add_learning(
            Learning(
                title=title,
                description=description,
                category=category,
                sql=sql,
                metadata=metadata,
            )
        )
        logger.info(
            f"Saved learning {learning.id}: {learning.title}",
            extra={"learning_id": learning.id, "category": learning.category.value, "source": metadata["source"]},
        )
        return learning

    def should_auto_learn(self) -> bool:
        return self.settings.enabled and self.settings.auto_save_errors

    async def learn_from_error(self, sql: str, error: str, question: str | None = None) -> Learning | None:
        """
        Record a learning for a failed query.

        Returns None when auto-learning is off, today's limit is reached,
        or a learning with the same title or SQL already exists.
        """
        if not self.should_auto_learn():
            return None

        if await self._daily_limit_reached():
            logger.info("Daily auto-learning limit reached, skipping error learning")
            return None

        analysis = self.analyzer.analyze(sql, error)
        if await self.has_similar(analysis["title"], sql):
            logger.debug(f"Similar learning already exists: {analysis['title']}")
            return None

        return await self.save(
            title=analysis["title"],
            description=analysis["description"],
            category=analysis["category"],
            sql=sql,
            metadata={
                "original_question": question,
                "error_message": error,
                "source": AUTO_LEARNED,
                "tables": analysis["tables"],
            },
        )

    async def has_similar(self, title: str, sql: str | None = None) -> bool:
        if await self.store.learning_exists(title=title):
            return True
        return sql is not None and await self.store.learning_exists(sql=sql)

    async def _daily_limit_reached(self) -> bool:
        limit = self.settings.max_auto_learnings_per_day
        today = _start_of_day(datetime.now(UTC))
        return await self.store.count_learnings_since(today, source=AUTO_LEARNED) >= limit

    async def search(
        self,
        query: str,
        limit: int = 5,
        category: LearningCategory | None = None,
    ) -> list[Learning]:
        # Over-fetch so the category filter still leaves up to ``limit`` hits
        fetch = limit * 3 if category is not None else limit
        results = await self.search_manager.search(query, "learnings", fetch)
        learnings = [result.item for result in results if isinstance(result.item, Learning)]
        if category is not None:
            learnings = [learning for learning in learnings if learning.category == category]
        return learnings[:limit]

    async def prune(self, days_old: int | None = None, keep_used: bool = True) -> int:
        """Delete learnings older than ``days_old`` (default prune_after_days)."""
        days = days_old if days_old is not None else self.settings.prune_after_days
        cutoff = datetime.now(UTC) - timedelta(days=days)
        deleted = await self.store.prune_learnings(cutoff, keep_used=keep_used)
        logger.info(f"Pruned {deleted} learnings older than {days} days", extra={"deleted": deleted})
        return deleted

    async def find_duplicates(self) -> list[Learning]:
        """Learnings repeating an earlier title or SQL; the first of each group is kept."""
        seen_titles: set[str] = set()
        seen_sql: set[str] = set()
        duplicates = []
        for learning in await self.store.list_learnings():
            if learning.title in seen_titles or (learning.sql and learning.sql in seen_sql):
                duplicates.append(learning)
                continue
            seen_titles.add(learning.title)
            if learning.sql:
                seen_sql.add(learning.sql)
        return duplicates

    async def remove_duplicates(self) -> int:
        removed = 0
        for learning in await self.find_duplicates():
            if learning.id is not None and await self.store.delete_learning(learning.id):
                removed += 1
        return removed

    async def get_stats(self) -> dict[str, Any]:
        learnings = await self.store.list_learnings()
        week_ago = datetime.now(UTC) - timedelta(days=7)

        by_category = {category.value: 0 for category in LearningCategory}
        for learning in learnings:
            by_category[learning.category.value] += 1

        auto_learned = sum(1 for learning in learnings if learning.source == AUTO_LEARNED)
        return {
            "total": len(learnings),
            "by_category": by_category,
            "recent_7_days": sum(1 for learning in learnings if learning.created_at >= week_ago),
            "auto_learned": auto_learned,
            "manual": len(learnings) - auto_learned,
        }
