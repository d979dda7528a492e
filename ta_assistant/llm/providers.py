"""LLM provider implementations for Gemini and OpenRouter, both with web search."""
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Dict, List, Optional

import requests
from google import genai
from google.genai import types

from ta_assistant.analysis.models import LLMResponse
from ta_assistant.config import Config
from ta_assistant.errors import BackendCallFailed, BackendUnavailable, CredentialMissing

logger = logging.getLogger("ta_assistant.llm")


def _check_ready(api_key: str, key_name: str, budget, provider: str):
    """Fail fast, before any network call, when the request cannot be attempted."""
    if not api_key:
        logger.error(f"{provider}: {key_name} not set")
        budget.last_error = f"{key_name} not set"
        raise CredentialMissing(f"{key_name} environment variable not set")
    if not budget.acquire():
        logger.warning(f"{provider}: LLM budget exhausted")
        wait = budget.retry_after()
        budget.last_error = "budget exhausted"
        raise BackendUnavailable(f"LLM call budget exhausted, retry in {wait:.0f}s")


def _grounding_chunks(response: Any) -> List[Dict[str, Any]]:
    """Citation chunks of the first candidate as plain {"web": {uri, title}} dicts."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    out = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        if web is None:
            continue
        out.append({"web": {"uri": getattr(web, "uri", None) or "", "title": getattr(web, "title", None)}})
    return out


def gemini_generate(prompt: str, budget) -> LLMResponse:
    """
    Call Gemini once with Google Search grounding enabled.

    Args:
        prompt: Full instruction text
        budget: LLMBudget instance for rate limiting

    Returns:
        LLMResponse with the raw text and grounding chunks

    Raises:
        CredentialMissing: GEMINI_API_KEY is not configured
        BackendUnavailable: the call budget is exhausted
        BackendCallFailed: the request failed or exceeded LLM_TIMEOUT
    """
    _check_ready(Config.GEMINI_API_KEY, "GEMINI_API_KEY", budget, "gemini_generate")

    logger.info(f"gemini_generate: calling model {Config.GEMINI_MODEL} with google_search tool")
    client = genai.Client(
        api_key=Config.GEMINI_API_KEY,
        http_options=types.HttpOptions(timeout=int(Config.LLM_TIMEOUT * 1000)),
    )
    config = types.GenerateContentConfig(
        tools=[types.Tool(google_search=types.GoogleSearch())],
        temperature=Config.LLM_TEMP,
    )

    def _invoke():
        return client.models.generate_content(
            model=Config.GEMINI_MODEL,
            contents=prompt,
            config=config,
        )

    # Bounded wait; the worker thread is abandoned on timeout
    pool = ThreadPoolExecutor(max_workers=1)
    try:
        future = pool.submit(_invoke)
        response = future.result(timeout=Config.LLM_TIMEOUT)
    except FuturesTimeoutError as e:
        logger.error(f"gemini_generate: no answer after {Config.LLM_TIMEOUT}s")
        budget.last_error = "timeout"
        raise BackendCallFailed(f"Gemini call timed out after {Config.LLM_TIMEOUT}s") from e
    except Exception as e:
        logger.error(f"gemini_generate: exception during call: {e}")
        budget.last_error = str(e)
        raise BackendCallFailed(f"Gemini call failed: {e}") from e
    finally:
        pool.shutdown(wait=False)

    raw = getattr(response, "text", None) or ""
    chunks = _grounding_chunks(response)
    logger.debug(f"gemini_generate: received {len(raw)} chars, {len(chunks)} grounding chunks")
    budget.last_error = None
    return LLMResponse(text=raw, citations=chunks)


def _url_citations(message: Dict[str, Any]) -> List[Dict[str, Any]]:
    """OpenRouter url_citation annotations in the same shape as Gemini chunks."""
    out = []
    for ann in message.get("annotations") or []:
        if not isinstance(ann, dict) or ann.get("type") != "url_citation":
            continue
        cite = ann.get("url_citation") or {}
        out.append({"web": {"uri": cite.get("url") or "", "title": cite.get("title")}})
    return out


def openrouter_generate(prompt: str, budget) -> LLMResponse:
    """
    Call OpenRouter once with the web search plugin enabled.

    Args:
        prompt: Full instruction text
        budget: LLMBudget instance for rate limiting

    Returns:
        LLMResponse with the raw text and url citations

    Raises:
        CredentialMissing: OPENROUTER_API_KEY is not configured
        BackendUnavailable: the call budget is exhausted
        BackendCallFailed: HTTP error, transport error or timeout
    """
    _check_ready(Config.OPENROUTER_API_KEY, "OPENROUTER_API_KEY", budget, "openrouter_generate")

    url = f"{Config.OPENROUTER_BASE_URL}/chat/completions"
    logger.info(f"openrouter_generate: calling {url} with model {Config.OPENROUTER_MODEL}")
    payload = {
        "model": Config.OPENROUTER_MODEL,
        "messages": [{"role": "user", "content": prompt}],
        "plugins": [{"id": "web"}],
        "temperature": Config.LLM_TEMP,
    }
    headers = {
        "Authorization": f"Bearer {Config.OPENROUTER_API_KEY}",
        "HTTP-Referer": "https://github.com/ta-assistant/ta-assistant",
        "X-Title": "Crypto TA Assistant",
    }

    try:
        r = requests.post(url, json=payload, headers=headers, timeout=Config.LLM_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"openrouter_generate: exception during call: {e}")
        budget.last_error = str(e)
        raise BackendCallFailed(f"OpenRouter call failed: {e}") from e

    if r.status_code != 200:
        budget.last_error = f"HTTP {r.status_code}"
        raise BackendCallFailed(f"OpenRouter HTTP {r.status_code}: {r.text[:200]}")

    try:
        data = r.json()
        message = (data.get("choices") or [{}])[0].get("message") or {}
    except (ValueError, AttributeError, IndexError) as e:
        budget.last_error = "bad envelope"
        raise BackendCallFailed(f"OpenRouter returned an unreadable envelope: {e}") from e

    raw = message.get("content") or ""
    citations = _url_citations(message)
    logger.debug(f"openrouter_generate: received {len(raw)} chars, {len(citations)} citations")
    budget.last_error = None
    return LLMResponse(text=raw, citations=citations)


PROVIDERS = {
    "gemini": gemini_generate,
    "openrouter": openrouter_generate,
}


def get_provider(name: Optional[str] = None):
    """Look up a provider function by name (defaults to Config.LLM_PROVIDER)."""
    key = (name or Config.LLM_PROVIDER or "").lower()
    fn = PROVIDERS.get(key)
    if fn is None:
        raise BackendUnavailable(f"unknown LLM provider: {key!r}")
    return fn
