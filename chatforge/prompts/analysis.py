"""Prompt templates for chat analysis routes.

One template per routing strategy: combined (images and documents),
vision, document understanding and direct knowledge. Conversation history
is rendered into a shared context block.

Examples:
    >>> from chatforge.prompts.analysis import get_vision_prompt
    >>> prompt = get_vision_prompt("What breed is this dog?")
"""

from __future__ import annotations

from typing import Sequence

# Prior answers are truncated to this many characters in the context block
HISTORY_ANSWER_CHARS = 300

COMBINED_PROMPT_TEMPLATE = """You are analyzing both images and documents together. Please provide a comprehensive response.
{history}
User Question: "{question}"

Document Content:
{documents}

Please:
1. Analyze the image(s) in detail
2. Review the document content
3. Find connections between the visual and textual information
4. Answer the user's question using insights from both sources
5. Provide a comprehensive response that integrates all available information

Format your response with clear sections and detailed explanations."""

VISION_PROMPT_TEMPLATE = """Analyze this image in detail and then answer the user's specific question.
{history}
User Question: "{question}"

Please provide:
1. A detailed description of what you see in the image
2. Identify all objects, text, people, and elements present
3. Analyze the context, setting, and any relevant details
4. Answer the user's specific question based on your analysis
5. Provide additional insights that might be relevant to their question

Format your response in clear sections with detailed explanations."""

VISION_DESCRIBE_PROMPT = (
    "Describe this image in comprehensive detail. Identify all objects, text, people, "
    "and elements you can see. Analyze the context, setting, colors, composition, and "
    "any other relevant visual information. Be thorough and descriptive."
)

DOCUMENT_PROMPT_TEMPLATE = """You are a document understanding expert. Based on the document summaries and full content provided, answer the user's question comprehensively.
{history}
User Question: "{question}"

Document Content:
{documents}

**Instructions:**
1. Use the document summaries as context to understand the overall content
2. Reference specific details from the full document content when answering
3. Cite information accurately, naming the document it came from
4. If the answer isn't in the documents, clearly state that and provide the best possible guidance

Be precise, comprehensive, and base your answers strictly on the document content provided."""

DIRECT_PROMPT_TEMPLATE = """Please provide a comprehensive and detailed response to the following question. Use your knowledge to give accurate, helpful information formatted in markdown with proper headings, bullet points, and structure:
{history}
User Question: {question}

Provide a well-structured, informative response."""

DEFAULT_DOCUMENT_QUESTION = "Please provide a comprehensive analysis of the document(s)"


def format_history(turns: Sequence[dict[str, str]] | None) -> str:
    """Render prior conversation turns as a context block.

    Args:
        turns: Dicts with optional "question" and "answer" keys, oldest first.

    Returns:
        Context block, or an empty string when there is no history.
    """
    if not turns:
        return ""

    lines = ["", "**Previous Conversation Context:**"]
    for index, turn in enumerate(turns, start=1):
        question = turn.get("question")
        answer = turn.get("answer")
        if question:
            lines.append(f'User Question {index}: "{question}"')
        if answer:
            suffix = "..." if len(answer) > HISTORY_ANSWER_CHARS else ""
            lines.append(f"AI Response {index}: {answer[:HISTORY_ANSWER_CHARS]}{suffix}")
        lines.append("---")
    lines.append("Please consider this conversation history when answering the current question.")
    lines.append("")
    return "\n".join(lines)


def format_document(title: str, file_type: str | None, content: str, summary: str | None = None) -> str:
    """Render one document block for the analysis prompts."""
    block = f"=== {title} ===\nType: {file_type or 'Unknown'}\n"
    if summary:
        block += f"Summary: {summary}\n"
    return block + f"Content: {content}\n---"


def get_combined_prompt(question: str, documents: str, history: str = "") -> str:
    """Prompt for requests carrying both images and documents."""
    return COMBINED_PROMPT_TEMPLATE.format(question=question, documents=documents, history=history)


def get_vision_prompt(question: str | None, history: str = "") -> str:
    """Prompt for image-only requests. Without a question the image is described."""
    if not question:
        return VISION_DESCRIBE_PROMPT
    return VISION_PROMPT_TEMPLATE.format(question=question, history=history)


def get_document_prompt(question: str | None, documents: str, history: str = "") -> str:
    """Prompt for document-only requests."""
    return DOCUMENT_PROMPT_TEMPLATE.format(
        question=question or DEFAULT_DOCUMENT_QUESTION,
        documents=documents,
        history=history,
    )


def get_direct_prompt(question: str, history: str = "") -> str:
    """Prompt for plain questions answered from model knowledge."""
    return DIRECT_PROMPT_TEMPLATE.format(question=question, history=history)
