"""
SQL Validator

Regex guardrails applied to every statement before it reaches a database.
Dialect-specific quoting (dollar quotes, escaped quotes) can confuse the
statement counter.
"""

import logging
import re

from sqlagent.config import SQLSettings
from sqlagent.models.errors import SQLValidationError
from sqlagent.services.access_control import TableAccessControl

logger = logging.getLogger(__name__)

_SINGLE_QUOTED = re.compile(r"'[^']*'")
_DOUBLE_QUOTED = re.compile(r'"[^"]*"')
_LITERAL_OR_COMMENT = re.compile(r"'[^']*'|/\*.*?\*/|--[^\n]*", re.DOTALL)
_IDENTIFIER = r"[`\[\"]?(\w+)[`\]\"]?"
_QUALIFIED_NAME = re.compile(rf"{_IDENTIFIER}(?:\s*\.\s*{_IDENTIFIER})?")
_TABLE_REFERENCE = re.compile(
    rf"\b(?:FROM|JOIN|INTO|UPDATE)\b\s*{_IDENTIFIER}(?:\s*\.\s*{_IDENTIFIER})?",
    re.IGNORECASE,
)
# FROM a, b x, c AS y  (stops at the next clause or a parenthesis)
_FROM_LIST = re.compile(
    r"\bFROM\b\s*([^()]+?)(?=\b(?:WHERE|GROUP|ORDER|HAVING|LIMIT|OFFSET|FETCH|WINDOW|UNION|INTERSECT|EXCEPT"
    r"|JOIN|INNER|LEFT|RIGHT|FULL|CROSS|NATURAL|ON|USING|FOR)\b|[();]|$)",
    re.IGNORECASE | re.DOTALL,
)


def strip_string_literals(sql: str) -> str:
    return _DOUBLE_QUOTED.sub("", _SINGLE_QUOTED.sub("", sql))


def strip_literals_and_comments(sql: str) -> str:
    """Drop single-quoted values; comments become whitespace."""
    return _LITERAL_OR_COMMENT.sub(lambda m: "" if m.group(0).startswith("'") else " ", sql)


def extract_table_names(sql: str) -> list[str]:
    """Tables referenced after FROM/JOIN/INTO/UPDATE and in FROM lists; schema prefixes dropped."""
    names = [second or first for first, second in _TABLE_REFERENCE.findall(sql)]
    for clause in _FROM_LIST.findall(sql):
        for item in clause.split(","):
            match = _QUALIFIED_NAME.match(item.strip())
            if match:
                names.append(match.group(2) or match.group(1))

    tables: list[str] = []
    seen: set[str] = set()
    for name in names:
        if name.lower() not in seen:
            seen.add(name.lower())
            tables.append(name)
    return tables


def referenced_tables(sql: str) -> list[str]:
    """Tables referenced by a statement, ignoring string values and comments."""
    return extract_table_names(strip_literals_and_comments(sql))


def referenced_columns(sql: str, candidates: list[str]) -> list[str]:
    """The candidate column names that appear as words in the statement."""
    text = strip_literals_and_comments(sql)
    return [
        column for column in candidates if re.search(rf"\b{re.escape(column)}\b", text, re.IGNORECASE)
    ]


class SqlValidator:
    """Rejects anything but a single read-only statement over permitted tables."""

    def __init__(self, settings: SQLSettings, access_control: TableAccessControl):
        self.settings = settings
        self.access_control = access_control

    def validate(self, sql: str, connection_name: str | None = None) -> None:
        """
        Validate a statement for execution.

        Hidden columns may come back from ``SELECT *`` and are stripped
        afterwards, but naming one anywhere in the statement is refused.

        Raises:
            SQLValidationError: With a message the model can act on
        """
        self.validate_statement(sql)

        without_strings = strip_string_literals(sql)
        if without_strings.count(";") > 1:
            raise SQLValidationError("Multiple SQL statements are not allowed.")

        for table in referenced_tables(sql):
            if not self.access_control.is_table_allowed(table, connection_name):
                logger.warning(
                    f"Blocked query on restricted table {table}",
                    extra={"table": table, "connection": connection_name},
                )
                raise SQLValidationError(
                    f"Access denied: table '{table}' is restricted and cannot be queried.",
                    context={"table": table, "connection": connection_name},
                )

            hidden = referenced_columns(sql, self.access_control.get_hidden_columns(table, connection_name))
            if hidden:
                logger.warning(
                    f"Blocked query on hidden column {table}.{hidden[0]}",
                    extra={"table": table, "connection": connection_name},
                )
                raise SQLValidationError(
                    f"Access denied: column '{hidden[0]}' of table '{table}' is hidden and cannot be queried.",
                    context={"table": table, "column": hidden[0], "connection": connection_name},
                )

    def validate_statement(self, sql: str) -> None:
        """Statement type and forbidden keyword checks only."""
        allowed = self.settings.allowed_statements
        sql_upper = sql.strip().upper()
        if not any(sql_upper.startswith(statement) for statement in allowed):
            raise SQLValidationError(f"Only {' and '.join(allowed)} statements are allowed.")

        for keyword in self.settings.forbidden_keywords:
            if re.search(rf"\b{re.escape(keyword)}\b", sql, re.IGNORECASE):
                raise SQLValidationError(
                    f"Forbidden SQL keyword detected: {keyword}. This query cannot be executed.",
                    context={"keyword": keyword},
                )
