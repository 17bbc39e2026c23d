"""
Prompt templates for the judge model, keyed by locale and version.
"""

from .registry import DEFAULT_LOCALE, DEFAULT_VERSION, PromptRegistry, PromptTemplate

__all__ = ["PromptRegistry", "PromptTemplate", "DEFAULT_LOCALE", "DEFAULT_VERSION"]
