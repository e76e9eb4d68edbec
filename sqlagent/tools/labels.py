"""Human readable labels for tool calls shown while streaming."""

from typing import Any

from sqlagent.models.agent import StreamChunk

TOOL_LABELS = {
    "run_sql": "Running SQL query",
    "introspect_schema": "Inspecting schema",
    "search_knowledge": "Searching knowledge base",
    "save_learning": "Saving learning",
    "save_validated_query": "Saving query pattern",
}

TOOL_TYPES = {
    "run_sql": "sql",
    "introspect_schema": "schema",
    "search_knowledge": "search",
    "save_learning": "save",
    "save_validated_query": "save",
}

CONNECTION_AWARE_TOOLS = ("run_sql", "introspect_schema")


class ToolLabelResolver:
    def get_label(self, tool_name: str) -> str:
        return TOOL_LABELS.get(tool_name, tool_name)

    def get_type(self, tool_name: str) -> str:
        return TOOL_TYPES.get(tool_name, "default")

    def build_chunk(self, tool_name: str, arguments: dict[str, Any]) -> StreamChunk:
        """Tool label chunk, naming the connection and previewing SQL when known."""
        label = self.get_label(tool_name)
        connection = arguments.get("connection")
        if connection and tool_name in CONNECTION_AWARE_TOOLS:
            label += f" on {connection}"

        sql_preview = None
        if tool_name == "run_sql":
            sql_preview = arguments.get("sql") or arguments.get("query") or None

        return StreamChunk.tool(label, self.get_type(tool_name), sql_preview)
