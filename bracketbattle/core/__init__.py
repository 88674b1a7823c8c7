"""Core module for the bracketbattle application."""

from .types import APIResponse, GameDocument, PromptRow

__all__ = ["APIResponse", "GameDocument", "PromptRow"]
