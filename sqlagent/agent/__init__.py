"""
Agent Module

The tool-calling loop and its transcript and fallback helpers.
"""

from sqlagent.agent.fallback import FallbackResponseGenerator
from sqlagent.agent.loop import SqlAgent
from sqlagent.agent.messages import MessageBuilder

__all__ = ["FallbackResponseGenerator", "MessageBuilder", "SqlAgent"]
