"""Tests for configuration module.

Tests for chatforge/config.py settings loading and model tables.
"""

import pytest

from chatforge.config import (
    BEST_LADDER,
    IMAGE_MODELS,
    ProviderFamily,
    RotationMode,
    Settings,
    family_for_model,
    get_settings,
)


@pytest.mark.fast
class TestSettingsDefaults:
    """Tests for default settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.DATABASE_URL.startswith("sqlite+aiosqlite")
        assert settings.PROVIDER_TIMEOUT == 60.0
        assert settings.SEARCH_TIMEOUT == 30.0
        assert settings.ENRICH_TIMEOUT == 12.0
        assert settings.FREE_DAILY_IMAGE_LIMIT == 10
        assert settings.FREE_MONTHLY_RESEARCH_LIMIT == 5
        assert settings.RESEARCH_MAX_QUERIES == 5
        assert settings.RESEARCH_ENRICH_COUNT == 8
        assert settings.CREDENTIAL_ROTATION == RotationMode.SEQUENTIAL

    def test_invalid_database_url(self):
        with pytest.raises(ValueError, match="DATABASE_URL"):
            Settings(_env_file=None, DATABASE_URL="mysql://localhost/db")

    def test_default_image_model_must_be_known(self):
        with pytest.raises(ValueError, match="DEFAULT_IMAGE_MODEL"):
            Settings(_env_file=None, DEFAULT_IMAGE_MODEL="provider-9/unknown")

    def test_production_flag(self):
        assert not Settings(_env_file=None).is_production
        assert Settings(_env_file=None, ENVIRONMENT="production").is_production

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()


@pytest.mark.fast
class TestSettingsCredentials:
    """Tests for numbered credential slots."""

    def test_slots_in_order_and_blank_filtered(self):
        settings = Settings(
            _env_file=None,
            OPENROUTER_API_KEY="or-1",
            OPENROUTER_API_KEY_2="   ",
            OPENROUTER_API_KEY_3="or-3",
            OPENROUTER_API_KEY_5=" or-5 ",
        )
        assert settings.credentials_for(ProviderFamily.OPENROUTER) == ["or-1", "or-3", "or-5"]

    def test_empty_family(self):
        settings = Settings(_env_file=None, A4F_API_KEY="")
        assert settings.credentials_for(ProviderFamily.A4F) == []
        assert not settings.has_provider(ProviderFamily.A4F)

    def test_search_pairs_reuse_last_cx(self):
        settings = Settings(
            _env_file=None,
            GOOGLE_SEARCH_API_KEY="k1",
            GOOGLE_SEARCH_API_KEY_2="k2",
            GOOGLE_SEARCH_API_KEY_3="k3",
            GOOGLE_CX_ID="cx1",
            GOOGLE_CX_ID_2="cx2",
        )
        assert settings.search_credentials() == [("k1", "cx1"), ("k2", "cx2"), ("k3", "cx2")]

    def test_search_requires_cx(self):
        settings = Settings(_env_file=None, GOOGLE_SEARCH_API_KEY="k1")
        assert settings.search_credentials() == []


@pytest.mark.fast
class TestFamilyForModel:
    """Tests for model → family inference."""

    @pytest.mark.parametrize(
        "model,family",
        [
            ("provider-4/flux-schnell", ProviderFamily.A4F),
            ("provider-5/dall-e-2", ProviderFamily.A4F),
            ("gemini-2.5-flash", ProviderFamily.GOOGLE),
            ("qwen/qwen3-4b:free", ProviderFamily.OPENROUTER),
            ("google/gemma-3-27b-it:free", ProviderFamily.OPENROUTER),
        ],
    )
    def test_family(self, model, family):
        assert family_for_model(model) == family

    def test_ladder_starts_with_gemini(self):
        assert BEST_LADDER[0] == (ProviderFamily.GOOGLE, "gemini-2.5-flash")
        assert all(family == ProviderFamily.OPENROUTER for family, _ in BEST_LADDER[1:])

    def test_image_models_served_by_a4f(self):
        assert all(family_for_model(m) == ProviderFamily.A4F for m in IMAGE_MODELS)
