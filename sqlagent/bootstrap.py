"""
Component wiring

Builds the knowledge store, connection registry, services, tool factory
and agent from Settings. Used by the API lifespan; tests pass their own
store, LLM provider and connector factory.
"""

import logging
from dataclasses import dataclass

from sqlagent.agent import SqlAgent
from sqlagent.config import Settings
from sqlagent.knowledge import (
    InMemoryKnowledgeStore,
    KnowledgeStore,
    PostgresKnowledgeStore,
    SearchManager,
    create_search_manager,
)
from sqlagent.llm import BaseLLMProvider, LLMProviderFactory
from sqlagent.prompts import PromptRenderer
from sqlagent.services import (
    BusinessRulesLoader,
    ConnectionRegistry,
    ContextBuilder,
    LearningMachine,
    SchemaIntrospector,
    SemanticModelLoader,
    SqlValidator,
    TableAccessControl,
)
from sqlagent.services.connection_registry import ConnectorFactory
from sqlagent.tools import DefaultToolRegistryFactory

logger = logging.getLogger(__name__)


@dataclass
class AgentComponents:
    settings: Settings
    store: KnowledgeStore
    connections: ConnectionRegistry
    search: SearchManager
    learning: LearningMachine
    llm: BaseLLMProvider
    agent: SqlAgent

    async def close(self) -> None:
        await self.connections.close()
        await self.store.close()
        await self.llm.close()


def create_knowledge_store(settings: Settings) -> KnowledgeStore:
    if settings.storage.url is None:
        logger.warning("STORAGE_URL not set; learnings and query patterns are kept in memory.")
        return InMemoryKnowledgeStore()
    return PostgresKnowledgeStore(str(settings.storage.url))


async def build_components(
    settings: Settings,
    store: KnowledgeStore | None = None,
    llm: BaseLLMProvider | None = None,
    connections: ConnectionRegistry | None = None,
    connector_factory: ConnectorFactory | None = None,
) -> AgentComponents:
    """Create and initialize everything the agent needs."""
    store = store or create_knowledge_store(settings)
    await store.initialize()

    connections = connections or ConnectionRegistry.from_settings(settings.connections, connector_factory)
    access_control = TableAccessControl(connections)
    validator = SqlValidator(settings.sql, access_control)
    introspector = SchemaIntrospector(connections, access_control)
    search = create_search_manager(settings.search, store)
    learning = LearningMachine(settings.learning, store, search)

    context_builder = ContextBuilder(
        settings=settings,
        registry=connections,
        semantic_model=SemanticModelLoader(settings.knowledge, store, access_control),
        business_rules=BusinessRulesLoader(settings.knowledge, store),
        search=search,
        introspector=introspector,
    )
    registry_factory = DefaultToolRegistryFactory(
        settings=settings,
        registry=connections,
        access_control=access_control,
        validator=validator,
        introspector=introspector,
        store=store,
        search=search,
        learning=learning,
    )

    llm = llm or LLMProviderFactory.create_default_provider(settings.llm)
    agent = SqlAgent(
        llm=llm,
        context_builder=context_builder,
        prompt_renderer=PromptRenderer(settings),
        registry_factory=registry_factory,
        connections=connections,
        settings=settings,
    )
    return AgentComponents(
        settings=settings,
        store=store,
        connections=connections,
        search=search,
        learning=learning,
        llm=llm,
        agent=agent,
    )
