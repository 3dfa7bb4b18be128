"""Tests for prompt builders."""

import pytest

from chatforge.prompts import analysis, synthesis


@pytest.mark.fast
class TestHistory:
    def test_empty(self):
        assert analysis.format_history([]) == ""
        assert analysis.format_history(None) == ""

    def test_answers_truncated(self):
        block = analysis.format_history([{"question": "q1", "answer": "x" * 500}])
        assert 'User Question 1: "q1"' in block
        assert "x" * 300 + "..." in block
        assert "x" * 301 not in block


@pytest.mark.fast
class TestAnalysisPrompts:
    def test_vision_without_question_describes(self):
        assert analysis.get_vision_prompt(None) == analysis.VISION_DESCRIBE_PROMPT

    def test_vision_with_question(self):
        assert '"What breed?"' in analysis.get_vision_prompt("What breed?")

    def test_document_default_question(self):
        prompt = analysis.get_document_prompt("", "=== a.txt ===")
        assert analysis.DEFAULT_DOCUMENT_QUESTION in prompt
        assert "=== a.txt ===" in prompt

    def test_format_document(self):
        block = analysis.format_document("notes.txt", "text/plain", "body", "short")
        assert block.startswith("=== notes.txt ===")
        assert "Summary: short" in block
        assert block.endswith("---")


@pytest.mark.fast
class TestSynthesisPrompts:
    SOURCES = [
        {"title": "First", "url": "https://a.example", "summary": "Alpha.", "key_points": ["k1", "k2"]},
        {"title": "", "url": "https://b.example", "snippet": "Beta snippet"},
    ]

    def test_sources_numbered_from_one(self):
        rendered = synthesis.format_sources(self.SOURCES)
        assert rendered.startswith("[1] First")
        assert "[2] Untitled" in rendered
        assert "Key Points: k1; k2" in rendered
        assert "Summary: Beta snippet" in rendered

    def test_research_prompt(self):
        prompt = synthesis.get_research_prompt("tides", self.SOURCES)
        assert 'RESEARCH TOPIC: "tides"' in prompt
        assert "(2 sources" in prompt
        assert "[1], [2]" in prompt

    def test_search_prompt(self):
        prompt = synthesis.get_search_prompt("what are tides?", self.SOURCES)
        assert "User Input: what are tides?" in prompt
        assert "[2] Untitled" in prompt
