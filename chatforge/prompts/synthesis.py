"""Synthesis prompt templates.

Source-grounded prompts that list sources with ``[n]`` citation markers
and ask the model to attribute claims to those indices. Used both by the
research pipeline and by chat requests that carry search results.

Examples:
    >>> from chatforge.prompts.synthesis import get_research_prompt
    >>> prompt = get_research_prompt("solid-state batteries", sources)
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

RESEARCH_PROMPT_TEMPLATE = """You are an expert research analyst with deep knowledge across multiple domains. Your task is to synthesize comprehensive, high-quality research based on the provided sources.

RESEARCH TOPIC: "{query}"

AVAILABLE SOURCES ({count} sources with summaries and key points):
{sources}

RESEARCH REQUIREMENTS:

1. EXECUTIVE SUMMARY & OVERVIEW (3-4 paragraphs)
   - Explain the significance of the topic and state the 3-5 most critical findings upfront

2. DETAILED ANALYSIS WITH MULTIPLE SECTIONS
   - Create 4-6 major sections based on the research
   - Include data, statistics and examples, referencing sources as [1], [2], etc.
   - Compare viewpoints and address controversies with a balanced perspective

3. KEY FINDINGS & INSIGHTS
   - List 8-12 major findings with specific data points where available
   - Note conflicting information between sources and flag consensus vs. debate

4. PRACTICAL IMPLICATIONS & FUTURE OUTLOOK
   - Real-world applications, emerging trends and open research directions

5. LIMITATIONS & RESEARCH GAPS
   - Distinguish well-established facts from areas of uncertainty

CITATION RULES:
- Reference sources using [1], [2], etc. throughout the response
- Back every major claim and statistic with the index of the source that supports it
- Only cite indices listed above

Organize with clear headings (## for main sections, ### for subsections), use bold for key terms, and aim for depth over brevity."""

SEARCH_PROMPT_TEMPLATE = """Based on the following search input and results, provide a comprehensive markdown-formatted response.
{history}
User Input: {question}

Search Results:
{sources}

Summarize and provide detailed information about the topic in markdown format with proper headings, bullet points, and formatting. Cite the results you rely on by their index, e.g. [1], [2]."""


def format_source(index: int, source: Mapping[str, Any]) -> str:
    """Render one source as an indexed citation block.

    Args:
        index: 1-based citation index.
        source: Mapping with title, url and optional summary/snippet/key_points.
    """
    summary = source.get("summary") or source.get("snippet") or ""
    block = f"[{index}] {source.get('title') or 'Untitled'}\n   URL: {source.get('url', '')}\n   Summary: {summary}"
    key_points = source.get("key_points") or []
    if key_points:
        block += "\n   Key Points: " + "; ".join(key_points)
    return block


def format_sources(sources: Sequence[Mapping[str, Any]]) -> str:
    """Render sources as consecutive ``[n]`` blocks."""
    return "\n\n".join(format_source(i, s) for i, s in enumerate(sources, start=1))


def get_research_prompt(query: str, sources: Sequence[Mapping[str, Any]]) -> str:
    """Prompt asking for a cited research synthesis over the given sources."""
    return RESEARCH_PROMPT_TEMPLATE.format(
        query=query,
        count=len(sources),
        sources=format_sources(sources),
    )


def get_search_prompt(question: str, sources: Sequence[Mapping[str, Any]], history: str = "") -> str:
    """Prompt answering a chat question from attached search results."""
    return SEARCH_PROMPT_TEMPLATE.format(
        question=question,
        sources=format_sources(sources),
        history=history,
    )
