"""LLM integration package for session narratives."""

from llm.gemini import GeminiClient, GeminiError, GenerationResult
from llm.prompts import PromptLibrary

__all__ = ["GeminiClient", "GeminiError", "GenerationResult", "PromptLibrary"]
