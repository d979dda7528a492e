"""Unified LLM interface."""
from typing import Optional

from ta_assistant.analysis.models import LLMResponse
from ta_assistant.llm.budget import LLM_BUDGET
from ta_assistant.llm.providers import get_provider


def execute_analysis(prompt: str, provider: Optional[str] = None) -> LLMResponse:
    """
    Send one analysis instruction to the configured backend.

    Routes to the provider named by Config.LLM_PROVIDER (or ``provider``)
    and uses the global LLM_BUDGET. Exactly one outbound request is made;
    nothing is retried.

    Raises:
        CredentialMissing, BackendUnavailable, BackendCallFailed

    Example:
        >>> resp = execute_analysis(build_analysis_prompt("Bitcoin (BTC)", "BTCUSDT", "4 Hours"))
        >>> record = parse_analysis(resp.text, resp.citations)
    """
    return get_provider(provider)(prompt, LLM_BUDGET)
