"""
Prompt templates sent to the AI providers.

Every function here is a pure string template; ``level`` only ever gets
interpolated into the text.
"""

from enhancer.config import CODEBASE_CHAR_LIMIT
from enhancer.models import Level


def _level(level: Level | str) -> str:
    return level.value if isinstance(level, Level) else str(level)


def decompose_prompt(prompt: str, level: Level | str) -> list[str]:
    """
    Split a prompt into three reasoning-style variants.

    Returns, in order: a chain-of-thought breakdown, a tree-of-thoughts
    exploration and a sub-task decomposition.
    """
    lvl = _level(level)
    return [
        f"Chain-of-Thought: Step-by-step breakdown of {prompt} at {lvl} level.",
        f"Tree-of-Thoughts: Explore multiple paths for {prompt}.",
        f"Decomposition: Sub-tasks for {prompt}: 1. Analyze, 2. Plan, 3. Implement at {lvl}.",
    ]


def enhance_prompt_message(fragment: str, level: Level | str) -> str:
    return (
        f"Enhance this decomposed prompt for code generation at {_level(level)} level: "
        f"{fragment}"
    )


def generate_code_message(prompt: str, level: Level | str) -> str:
    return (
        f"Generate production-ready code based on this prompt: {prompt}. "
        f"Apply best practices at {_level(level)} level: clean code, error handling, security."
    )


def enhance_code_message(code_base: str, level: Level | str) -> str:
    """Embed at most CODEBASE_CHAR_LIMIT characters of the code base."""
    return (
        f"Take this code base: {code_base[:CODEBASE_CHAR_LIMIT]}. "
        f"Make it production-ready at {_level(level)} level: apply best practices "
        f"like error handling, optimization, security fixes."
    )
