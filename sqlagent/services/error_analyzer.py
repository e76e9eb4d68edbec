"""
Error Analyzer

Turns a failed SQL execution into a learning draft: category, title,
description and the tables involved.
"""

import re
from typing import Any

import sqlparse

from sqlagent.knowledge.text import extract_tables_from_sql
from sqlagent.models.knowledge import LearningCategory

CATEGORY_PATTERNS: list[tuple[LearningCategory, list[str]]] = [
    (
        LearningCategory.SCHEMA_FIX,
        [
            r"column.*not found",
            r"unknown column",
            r"table.*not found",
            r"unknown table",
            r"doesn't exist",
            r"does not exist",
            r"no such table",
            r"relation.*does not exist",
            r"undefined column",
        ],
    ),
    (
        LearningCategory.TYPE_ERROR,
        [
            r"type.*mismatch",
            r"cannot convert",
            r"invalid.*type",
            r"incompatible types",
            r"conversion failed",
            r"invalid input syntax",
        ],
    ),
    (
        LearningCategory.QUERY_PATTERN,
        [
            r"syntax error",
            r"unexpected",
            r"parse error",
            r"mismatched input",
        ],
    ),
    (
        LearningCategory.DATA_QUALITY,
        [
            r"data.*truncat",
            r"out of range",
            r"duplicate.*key",
            r"constraint.*violation",
            r"null.*constraint",
            r"division by zero",
        ],
    ),
]

_TITLE_NOISE = [
    re.compile(r"SQLSTATE\[[^\]]+\]", re.IGNORECASE),
    re.compile(r"\[[A-Z0-9]+\]"),
    re.compile(r"^\s*(General error|PDO Exception|SQL Error):\s*", re.IGNORECASE),
]
_COLUMN_NAME = re.compile(r"(?:unknown column|column)\s*['\"`]([^'\"`]+)['\"`]", re.IGNORECASE)
_TABLE_NAME = re.compile(r"table\s*['\"`](?:[^.'\"`]+\.)?([^'\"`]+)['\"`]", re.IGNORECASE)

MAX_TITLE_LENGTH = 100
DEFAULT_TITLE = "SQL Error"


class ErrorAnalyzer:
    """Stateless classification of database error messages."""

    def categorize(self, error: str) -> LearningCategory:
        for category, patterns in CATEGORY_PATTERNS:
            if any(re.search(pattern, error, re.IGNORECASE) for pattern in patterns):
                return category
        return LearningCategory.BUSINESS_LOGIC

    def generate_title(self, error: str) -> str:
        title = error
        for pattern in _TITLE_NOISE:
            title = pattern.sub("", title)
        title = re.sub(r"\s+", " ", title).strip()

        if len(title) > MAX_TITLE_LENGTH:
            title = title[: MAX_TITLE_LENGTH - 3] + "..."
        return title or DEFAULT_TITLE

    def generate_description(
        self,
        sql: str,
        error: str,
        category: LearningCategory,
        tables: list[str],
    ) -> str:
        pretty_sql = sqlparse.format(sql, reindent=True, keyword_case="upper").strip()

        description = f"SQL execution failed with error: {error}\n\n"
        description += f"Original query:\n```sql\n{pretty_sql}\n```\n\n"
        if tables:
            description += f"Tables involved: {', '.join(tables)}\n\n"
        description += f"Category: {category.label}\n"
        description += "This learning was auto-generated from a SQL error."
        return description

    def analyze(self, sql: str, error: str) -> dict[str, Any]:
        """
        Analyze a failed query.

        Returns:
            Dict with category, title, description and tables
        """
        category = self.categorize(error)
        tables = extract_tables_from_sql(sql)
        return {
            "category": category,
            "title": self.generate_title(error),
            "description": self.generate_description(sql, error, category, tables),
            "tables": tables,
        }

    @staticmethod
    def extract_column_name(error: str) -> str | None:
        match = _COLUMN_NAME.search(error)
        return match.group(1) if match else None

    @staticmethod
    def extract_table_name(error: str) -> str | None:
        match = _TABLE_NAME.search(error)
        return match.group(1) if match else None
