"""Tests for the creator-question classifier."""

import pytest

from chatforge.core.identity import IdentityAnswer, RouteToProvider, classify_identity, match_language


@pytest.mark.fast
class TestClassifyIdentity:
    @pytest.mark.parametrize(
        "text,language",
        [
            ("Who made you?", "en"),
            ("who   BUILT you", "en"),
            ("What company created you?", "en"),
            ("who is your creator", "en"),
            ("¿Quién te creó?", "es"),
            ("Qui t'a créé ?", "fr"),
            ("Wer hat dich entwickelt?", "de"),
            ("tumhe kisne banaya", "hi"),
            ("तुम्हें किसने बनाया", "hi"),
        ],
    )
    def test_creator_questions(self, text, language):
        result = classify_identity(text, brand="Acme")
        assert isinstance(result, IdentityAnswer)
        assert result.language == language
        assert "Acme" in result.text

    @pytest.mark.parametrize(
        "text",
        [
            "What is the capital of Peru?",
            "Who made the Eiffel Tower?",
            "Describe how you would build a birdhouse",
            "",
            "   ",
            None,
        ],
    )
    def test_other_questions_route_to_provider(self, text):
        assert isinstance(classify_identity(text), RouteToProvider)

    def test_default_brand(self):
        result = classify_identity("who created you")
        assert "ChatForge" in result.text
        assert "{brand}" not in result.text

    def test_match_language_none(self):
        assert match_language("tell me a joke") is None
