"""Prompt templates for routed generations.

Each module provides the templates and a ``get_prompt`` style builder for
one routing strategy.

Examples:
    >>> from chatforge.prompts import analysis, synthesis
    >>> prompt = analysis.get_direct_prompt("how do tides work?")
"""

from chatforge.prompts import analysis, identity, synthesis

__all__ = ["analysis", "identity", "synthesis"]
