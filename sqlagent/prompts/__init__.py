"""Prompt templates and rendering."""

from sqlagent.prompts.loader import PromptLoader, PromptRenderer

__all__ = ["PromptLoader", "PromptRenderer"]
