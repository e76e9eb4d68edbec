"""Answers synthesized from query results when the model produced none."""

from typing import Any

PREVIEW_ROWS = 5
GENERIC_ANSWER = (
    "I gathered information but could not finish answering within the allowed number of steps. "
    "Please try rephrasing or narrowing the question."
)


def _cell(value: Any) -> str:
    if value is None:
        return "NULL"
    return str(value).replace("|", "\\|").replace("\n", " ")


class FallbackResponseGenerator:
    def generate(self, results: list[dict[str, Any]] | None) -> str:
        """Plain summary of query rows: a single value, or a markdown table preview."""
        if results is None:
            return GENERIC_ANSWER
        if not results:
            return "The query returned no results."

        if len(results) == 1 and len(results[0]) == 1:
            (column, value), = results[0].items()
            return f"The result is: **{column}** = {_cell(value)}."

        columns = list(results[0])
        lines = [
            "| " + " | ".join(columns) + " |",
            "| " + " | ".join("---" for _ in columns) + " |",
        ]
        for row in results[:PREVIEW_ROWS]:
            lines.append("| " + " | ".join(_cell(row.get(column)) for column in columns) + " |")

        count = len(results)
        header = f"The query returned {count} row{'s' if count != 1 else ''}"
        if count > PREVIEW_ROWS:
            header += f". Here are the first {PREVIEW_ROWS}"
        return header + ":\n\n" + "\n".join(lines)
