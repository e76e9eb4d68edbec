"""
Knowledge Models

Learnings, validated query patterns, semantic table metadata and business
rules. These are the building blocks the context builder ranks and renders
into the system prompt.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LearningCategory(StrEnum):
    TYPE_ERROR = "type_error"
    SCHEMA_FIX = "schema_fix"
    QUERY_PATTERN = "query_pattern"
    DATA_QUALITY = "data_quality"
    BUSINESS_LOGIC = "business_logic"

    @property
    def label(self) -> str:
        return {
            LearningCategory.TYPE_ERROR: "Type Error",
            LearningCategory.SCHEMA_FIX: "Schema Fix",
            LearningCategory.QUERY_PATTERN: "Query Pattern",
            LearningCategory.DATA_QUALITY: "Data Quality",
            LearningCategory.BUSINESS_LOGIC: "Business Logic",
        }[self]


class Learning(BaseModel):
    """A discovered fact about the data: a quirk, an error or its fix."""

    id: int | None = Field(None, description="Store-assigned identifier")
    title: str = Field(..., min_length=1, description="Short human readable title")
    description: str = Field(..., description="What was learned")
    category: LearningCategory = Field(..., description="Learning category")
    sql: str | None = Field(None, description="SQL the learning relates to")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="original_question, error_message, source (auto_learned|manual), tables",
    )
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def source(self) -> str | None:
        return self.metadata.get("source")

    def search_text(self) -> str:
        return f"{self.title} {self.description}"


class QueryPattern(BaseModel):
    """A validated, reusable question to SQL mapping."""

    id: int | None = Field(None, description="Store-assigned identifier")
    name: str = Field(..., min_length=1, max_length=100)
    question: str = Field(..., min_length=1)
    sql: str = Field(..., min_length=1)
    summary: str | None = None
    tables_used: list[str] = Field(default_factory=list)
    data_quality_notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    def search_text(self) -> str:
        return f"{self.name} {self.question} {self.summary or ''}"

    def uses_table(self, table_name: str) -> bool:
        return table_name in self.tables_used

    def to_prompt_string(self) -> str:
        output = f"### {self.name}\n"
        output += f"**Question:** {self.question}\n"
        if self.summary:
            output += f"**Summary:** {self.summary}\n"
        output += f"```sql\n{self.sql}\n```\n"
        if self.tables_used:
            output += f"Tables used: {', '.join(self.tables_used)}\n"
        if self.data_quality_notes:
            output += f"Note: {self.data_quality_notes}\n"
        return output


class TableSchema(BaseModel):
    """Semantic description of one table, keyed column name -> description."""

    table_name: str
    description: str | None = None
    columns: dict[str, str] = Field(default_factory=dict)
    relationships: list[str] = Field(default_factory=list)
    data_quality_notes: list[str] = Field(default_factory=list)
    use_cases: list[str] = Field(default_factory=list)
    connection: str | None = Field(None, description="Connection this table belongs to")

    def column_names(self) -> list[str]:
        return list(self.columns)

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def to_prompt_string(self) -> str:
        output = f"## Table: {self.table_name}\n"
        if self.description:
            output += f"{self.description}\n\n"

        if self.use_cases:
            output += "### Use Cases:\n"
            for use_case in self.use_cases:
                output += f"- {use_case}\n"
            output += "\n"

        output += "### Columns:\n"
        for name, description in self.columns.items():
            output += f"- {name}: {description}\n"

        if self.relationships:
            output += "\n### Relationships:\n"
            for relationship in self.relationships:
                output += f"- {relationship}\n"

        if self.data_quality_notes:
            output += "\n### Data Quality Notes:\n"
            for note in self.data_quality_notes:
                output += f"- {note}\n"

        return output


class BusinessRuleType(StrEnum):
    METRIC = "metric"
    RULE = "rule"
    GOTCHA = "gotcha"


class BusinessRule(BaseModel):
    """A metric definition, business rule or known gotcha."""

    name: str
    description: str
    type: BusinessRuleType
    calculation: str | None = None
    table: str | None = None
    tables_affected: list[str] = Field(default_factory=list)
    solution: str | None = None

    def to_prompt_string(self) -> str:
        if self.type == BusinessRuleType.METRIC:
            output = f"**{self.name}**: {self.description}"
            if self.table:
                output += f" (Table: {self.table})"
            if self.calculation:
                output += f"\n  Calculation: `{self.calculation}`"
            return output

        if self.type == BusinessRuleType.RULE:
            output = f"- {self.name}: {self.description}"
            if self.tables_affected:
                output += f" (Tables: {', '.join(self.tables_affected)})"
            return output

        output = f"**{self.name}**: {self.description}"
        if self.tables_affected:
            output += f"\n  Affected tables: {', '.join(self.tables_affected)}"
        if self.solution:
            output += f"\n  Solution: {self.solution}"
        return output


class SearchResult(BaseModel):
    """One ranked hit from a knowledge index."""

    index: str
    item: Learning | QueryPattern | dict[str, Any]
    score: float = 0.0
