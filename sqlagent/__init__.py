"""
SqlAgent

Natural language to SQL agent: an LLM tool-calling loop over validated,
read-only SQL, backed by a knowledge base of table metadata, business
rules, proven query patterns and learnings from past errors.
"""

__version__ = "0.1.0"
