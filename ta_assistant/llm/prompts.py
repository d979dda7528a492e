"""Prompt loader for LLM interactions."""
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger("ta_assistant.llm")

# Cache for loaded prompts
_PROMPT_CACHE: Dict[str, Dict[str, Any]] = {}


def _get_prompts_dir() -> Path:
    """Get the prompts directory path."""
    return Path(__file__).parent.parent / "prompts"


def load_prompts(category: str, force_reload: bool = False) -> Dict[str, Any]:
    """
    Load prompts from JSON file.

    Args:
        category: Prompt category (e.g. "analysis")
        force_reload: If True, bypass cache and reload from disk

    Returns:
        Dictionary of prompts for the category, {} if the file is missing or invalid
    """
    cache_key = f"{category}_prompts"

    if not force_reload and cache_key in _PROMPT_CACHE:
        return _PROMPT_CACHE[cache_key]

    prompts_file = _get_prompts_dir() / f"{category}_prompts.json"

    try:
        with open(prompts_file, "r", encoding="utf-8") as f:
            prompts = json.load(f)

        _PROMPT_CACHE[cache_key] = prompts
        logger.info(f"Loaded {len(prompts)} prompts from {category}_prompts.json")
        return prompts

    except FileNotFoundError:
        logger.error(f"Prompts file not found: {prompts_file}")
        return {}
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in {prompts_file}: {e}")
        return {}


def get_prompt(category: str, prompt_name: str, force_reload: bool = False) -> Optional[Dict[str, Any]]:
    """
    Get a specific prompt by category and name.

    Returns:
        Prompt dictionary (keys depend on the prompt, e.g. 'template', 'description'),
        or None if not found
    """
    prompts = load_prompts(category, force_reload=force_reload)
    return prompts.get(prompt_name)


def format_prompt(template: str, **kwargs) -> str:
    """
    Format a prompt template with provided keyword arguments.

    Raises:
        KeyError: a placeholder in the template has no value
    """
    try:
        return template.format(**kwargs)
    except KeyError as e:
        logger.error(f"Missing template variable: {e}")
        raise
