"""
Business Rules Loader

Metric definitions, business rules and known gotchas from
``<knowledge path>/business/*.{json,yaml,yml}`` or the knowledge store.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from sqlagent.config import KnowledgeSettings
from sqlagent.knowledge.store import KnowledgeStore
from sqlagent.models.knowledge import BusinessRule, BusinessRuleType
from sqlagent.services.semantic_model import knowledge_files, read_knowledge_file

logger = logging.getLogger(__name__)

NO_BUSINESS_RULES = "No business rules defined."


def parse_business_data(data: dict[str, Any]) -> list[BusinessRule]:
    """Rules from one business file (metrics, business_rules/rules, common_gotchas/gotchas)."""
    rules: list[BusinessRule] = []

    for metric in data.get("metrics") or []:
        rules.append(
            BusinessRule(
                name=metric["name"],
                description=metric.get("definition") or metric.get("description") or "",
                type=BusinessRuleType.METRIC,
                calculation=metric.get("calculation"),
                table=metric.get("table"),
            )
        )

    for rule in data.get("business_rules") or data.get("rules") or []:
        if isinstance(rule, str):
            rules.append(
                BusinessRule(name="Business Rule", description=rule, type=BusinessRuleType.RULE)
            )
            continue
        rules.append(
            BusinessRule(
                name=rule.get("name") or "Business Rule",
                description=rule.get("description") or rule.get("rule") or "",
                type=BusinessRuleType.RULE,
                tables_affected=rule.get("tables_affected") or [],
            )
        )

    for gotcha in data.get("common_gotchas") or data.get("gotchas") or []:
        if isinstance(gotcha, str):
            rules.append(BusinessRule(name="Gotcha", description=gotcha, type=BusinessRuleType.GOTCHA))
            continue
        rules.append(
            BusinessRule(
                name=gotcha.get("issue") or gotcha.get("name") or "Gotcha",
                description=gotcha.get("description") or gotcha.get("issue") or "",
                type=BusinessRuleType.GOTCHA,
                tables_affected=gotcha.get("tables_affected") or [],
                solution=gotcha.get("solution"),
            )
        )

    return rules


class BusinessRulesLoader:
    def __init__(self, settings: KnowledgeSettings, store: KnowledgeStore):
        self.settings = settings
        self.store = store

    async def load(self) -> list[BusinessRule]:
        if self.settings.source == "store":
            return await self.store.list_business_rules()

        rules: list[BusinessRule] = []
        for path in knowledge_files(Path(self.settings.path) / "business"):
            try:
                rules.extend(parse_business_data(read_knowledge_file(path) or {}))
            except (OSError, ValueError, yaml.YAMLError, KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping unreadable business rules file {path}: {e}")
        return rules

    async def get_by_type(self, rule_type: BusinessRuleType) -> list[BusinessRule]:
        return [rule for rule in await self.load() if rule.type == rule_type]

    async def get_metrics(self) -> list[BusinessRule]:
        return await self.get_by_type(BusinessRuleType.METRIC)

    async def get_rules(self) -> list[BusinessRule]:
        return await self.get_by_type(BusinessRuleType.RULE)

    async def get_gotchas(self) -> list[BusinessRule]:
        return await self.get_by_type(BusinessRuleType.GOTCHA)

    async def format(self) -> str:
        """Render metrics, rules and gotchas as markdown sections."""
        rules = await self.load()
        if not rules:
            return NO_BUSINESS_RULES

        metrics = [rule for rule in rules if rule.type == BusinessRuleType.METRIC]
        business_rules = [rule for rule in rules if rule.type == BusinessRuleType.RULE]
        gotchas = [rule for rule in rules if rule.type == BusinessRuleType.GOTCHA]

        sections = []
        if metrics:
            sections.append(
                "## Metrics & Definitions\n\n"
                + "\n\n".join(rule.to_prompt_string() for rule in metrics)
            )
        if business_rules:
            sections.append(
                "## Business Rules\n\n" + "\n".join(rule.to_prompt_string() for rule in business_rules)
            )
        if gotchas:
            sections.append(
                "## Common Gotchas\n\n" + "\n\n".join(rule.to_prompt_string() for rule in gotchas)
            )
        return "\n\n".join(sections)
