"""Unit tests for the tool registry and tool policy files."""

from typing import Any

import pytest

from sqlagent.models.errors import ToolRegistrationError
from sqlagent.tools import Tool, ToolRegistry, load_tool_policy
from sqlagent.tools.registry import import_tool_class


class PingTool(Tool):
    name = "ping"
    description = "Reply with pong"

    async def handle(self) -> dict[str, Any]:
        return {"reply": "pong"}


class PongTool(PingTool):
    name = "pong"


class NotATool:
    pass


class TestToolRegistry:
    def test_register_and_lookup(self):
        registry = ToolRegistry().register(PingTool())

        assert registry.has("ping")
        assert "ping" in registry
        assert registry.names() == ["ping"]
        assert len(registry) == 1
        assert registry.definitions()[0].name == "ping"

    def test_strict_duplicate_rejected(self):
        registry = ToolRegistry().register(PingTool())

        with pytest.raises(ToolRegistrationError, match="already registered"):
            registry.register(PingTool(), strict=True)

    def test_non_strict_duplicate_replaces(self):
        first, second = PingTool(), PingTool()
        registry = ToolRegistry().register(first).register(second)

        assert registry.get("ping") is second

    def test_nameless_tool_rejected(self):
        tool = PingTool()
        tool.name = ""

        with pytest.raises(ToolRegistrationError, match="has no name"):
            ToolRegistry().register(tool)

    def test_get_unknown(self):
        with pytest.raises(KeyError):
            ToolRegistry().get("missing")

    def test_remove_and_clear(self):
        registry = ToolRegistry().register_many([PingTool(), PongTool()])

        registry.remove("ping").remove("never-registered")
        assert registry.names() == ["pong"]

        registry.clear()
        assert len(registry) == 0


class TestImportToolClass:
    def test_imports_tool_subclass(self):
        assert import_tool_class(f"{__name__}:PongTool") is PongTool

    @pytest.mark.parametrize(
        "reference, message",
        [
            ("no_colon", "expected 'module:Class'"),
            ("sqlagent.does_not_exist:Tool", "Cannot import tool"),
            (f"{__name__}:Missing", "Cannot import tool"),
            (f"{__name__}:NotATool", "is not a Tool subclass"),
        ],
    )
    def test_invalid_references(self, reference, message):
        with pytest.raises(ToolRegistrationError, match=message):
            import_tool_class(reference)


class TestToolPolicy:
    def test_missing_file_is_empty_policy(self, tmp_path):
        assert load_tool_policy(tmp_path / "tools.yaml") == {}

    def test_disable_and_register_custom(self, tmp_path):
        path = tmp_path / "tools.yaml"
        path.write_text(
            "tools:\n"
            "  - name: ping\n"
            "    enabled: false\n"
            "  - name: unknown\n"
            "    enabled: false\n"
            "custom:\n"
            f"  - {__name__}:PongTool\n"
        )
        registry = ToolRegistry().register(PingTool())

        registry.load_policy_config(path)

        assert registry.names() == ["pong"]

    def test_custom_tool_cannot_shadow_builtin(self):
        registry = ToolRegistry().register(PongTool())

        with pytest.raises(ToolRegistrationError, match="already registered"):
            registry.apply_policy({"custom": [f"{__name__}:PongTool"]})

    def test_empty_policy_file(self, tmp_path):
        path = tmp_path / "tools.yaml"
        path.write_text("")

        assert load_tool_policy(path) == {}
