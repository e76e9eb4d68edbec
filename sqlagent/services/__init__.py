"""
Agent Services

Safety, knowledge and context services used by the agent loop and its
tools.
"""

from sqlagent.services.access_control import TableAccessControl
from sqlagent.services.business_rules import BusinessRulesLoader
from sqlagent.services.connection_registry import ConnectionRegistry
from sqlagent.services.context_builder import Context, ContextBuilder
from sqlagent.services.error_analyzer import ErrorAnalyzer
from sqlagent.services.learning import LearningMachine
from sqlagent.services.schema_introspector import SchemaIntrospector
from sqlagent.services.semantic_model import SemanticModelLoader
from sqlagent.services.sql_validator import SqlValidator

__all__ = [
    "BusinessRulesLoader",
    "ConnectionRegistry",
    "Context",
    "ContextBuilder",
    "ErrorAnalyzer",
    "LearningMachine",
    "SchemaIntrospector",
    "SemanticModelLoader",
    "SqlValidator",
    "TableAccessControl",
]
