"""LLM module - Budget, providers, prompt building and unified interface."""

from ta_assistant.llm.budget import LLMBudget, LLM_BUDGET
from ta_assistant.llm.interface import execute_analysis
from ta_assistant.llm.providers import gemini_generate, openrouter_generate
from ta_assistant.llm.request_builder import build_analysis_prompt, bare_ticker

__all__ = [
    "LLMBudget",
    "LLM_BUDGET",
    "execute_analysis",
    "gemini_generate",
    "openrouter_generate",
    "build_analysis_prompt",
    "bare_ticker",
]
