"""Unit tests for business rule loading and formatting."""

import pytest

from sqlagent.config import KnowledgeSettings
from sqlagent.models.knowledge import BusinessRule, BusinessRuleType
from sqlagent.services.business_rules import (
    NO_BUSINESS_RULES,
    BusinessRulesLoader,
    parse_business_data,
)


class TestParseBusinessData:
    def test_all_sections(self):
        rules = parse_business_data(
            {
                "metrics": [{"name": "Revenue", "definition": "Paid totals", "calculation": "SUM(total)"}],
                "business_rules": ["Amounts are in cents", {"name": "Fiscal year", "rule": "Starts in April"}],
                "common_gotchas": [
                    {"issue": "Refunds keep totals", "tables_affected": ["orders"], "solution": "Filter status"}
                ],
            }
        )

        assert [rule.type for rule in rules] == [
            BusinessRuleType.METRIC,
            BusinessRuleType.RULE,
            BusinessRuleType.RULE,
            BusinessRuleType.GOTCHA,
        ]
        assert rules[1].name == "Business Rule"
        assert rules[2].description == "Starts in April"
        assert rules[3].solution == "Filter status"

    def test_short_keys(self):
        rules = parse_business_data({"rules": ["One"], "gotchas": ["Two"]})

        assert [(rule.name, rule.description) for rule in rules] == [
            ("Business Rule", "One"),
            ("Gotcha", "Two"),
        ]


class TestBusinessRulesLoader:
    @pytest.mark.asyncio
    async def test_load_from_files(self, knowledge_dir, knowledge_store):
        loader = BusinessRulesLoader(KnowledgeSettings(path=knowledge_dir), knowledge_store)

        metrics = await loader.get_metrics()
        rules = await loader.get_rules()

        assert [metric.name for metric in metrics] == ["Revenue"]
        assert [rule.description for rule in rules] == ["Amounts are stored in cents"]
        assert await loader.get_gotchas() == []

    @pytest.mark.asyncio
    async def test_format_sections(self, knowledge_dir, knowledge_store):
        loader = BusinessRulesLoader(KnowledgeSettings(path=knowledge_dir), knowledge_store)

        formatted = await loader.format()

        assert formatted == (
            "## Metrics & Definitions\n\n"
            "**Revenue**: Sum of paid order totals (Table: orders)\n\n"
            "## Business Rules\n\n"
            "- Business Rule: Amounts are stored in cents"
        )

    @pytest.mark.asyncio
    async def test_unreadable_file_is_skipped(self, tmp_path, knowledge_store):
        business = tmp_path / "business"
        business.mkdir()
        (business / "bad.yaml").write_text("metrics: [ {name: \n")
        (business / "good.yaml").write_text("rules: [Timestamps are UTC]\n")
        loader = BusinessRulesLoader(KnowledgeSettings(path=tmp_path), knowledge_store)

        assert [rule.description for rule in await loader.load()] == ["Timestamps are UTC"]

    @pytest.mark.asyncio
    async def test_no_rules(self, tmp_path, knowledge_store):
        loader = BusinessRulesLoader(KnowledgeSettings(path=tmp_path), knowledge_store)

        assert await loader.format() == NO_BUSINESS_RULES

    @pytest.mark.asyncio
    async def test_store_source(self, tmp_path, knowledge_store):
        await knowledge_store.save_business_rule(
            BusinessRule(name="Churn", description="No order in 180 days", type=BusinessRuleType.METRIC)
        )
        loader = BusinessRulesLoader(KnowledgeSettings(source="store", path=tmp_path), knowledge_store)

        assert "**Churn**: No order in 180 days" in await loader.format()
