"""Application configuration with Pydantic Settings.

Settings are loaded from environment variables and .env files. Provider
credentials live in numbered slots (``OPENROUTER_API_KEY``,
``OPENROUTER_API_KEY_2`` ... ``_5``) so operators can add keys without a
code change; blank slots are ignored.

Examples:
    >>> from chatforge.config import settings, ProviderFamily
    >>> settings.credentials_for(ProviderFamily.OPENROUTER)
    ['sk-or-v1-...', 'sk-or-v1-...']

    >>> family_for_model("provider-4/flux-schnell")
    <ProviderFamily.A4F: 'a4f'>

Tests:
    - tests/unit/test_config.py::TestSettingsCredentials
    - tests/unit/test_config.py::TestFamilyForModel
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderFamily(str, Enum):
    """Provider families, each with its own credential pool."""

    GOOGLE = "google"
    OPENROUTER = "openrouter"
    A4F = "a4f"


class RotationMode(str, Enum):
    """How a credential pool orders its keys for each request.

    - SEQUENTIAL: always start from the first key (exhaust key 1 before key 2)
    - ROUND_ROBIN: start from a rotating cursor to spread load across keys
    """

    SEQUENTIAL = "sequential"
    ROUND_ROBIN = "round_robin"


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


# Number of numbered credential slots read per family
CREDENTIAL_SLOTS = 5

# Env var prefix for each family's credential slots
CREDENTIAL_ENV_PREFIX: dict[ProviderFamily, str] = {
    ProviderFamily.GOOGLE: "GEMINI_API_KEY",
    ProviderFamily.OPENROUTER: "OPENROUTER_API_KEY",
    ProviderFamily.A4F: "A4F_API_KEY",
}

# Base URLs for the OpenAI-compatible families
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
A4F_BASE_URL = "https://api.a4f.co/v1"

# Default text and vision model on the native Google family
GEMINI_TEXT_MODEL = "gemini-2.5-flash"
VISION_MODEL = "gemini-2.5-flash"

# Free OpenRouter models tried after Gemini when "best" is selected
OPENROUTER_FREE_LADDER: list[str] = [
    "openai/gpt-oss-20b:free",
    "qwen/qwen3-coder:free",
    "google/gemma-3n-e2b-it:free",
    "qwen/qwen3-4b:free",
    "google/gemma-3-27b-it:free",
]

# "best"/"auto" preference ladder across families, strongest first
BEST_LADDER: list[tuple[ProviderFamily, str]] = [
    (ProviderFamily.GOOGLE, GEMINI_TEXT_MODEL),
    *[(ProviderFamily.OPENROUTER, model) for model in OPENROUTER_FREE_LADDER],
]

# Model selections that mean "use the preference ladder"
AUTO_SELECTIONS = frozenset({"best", "auto", ""})

# Image models served by A4F (all return 1024x1024)
IMAGE_MODELS: list[str] = [
    "provider-4/imagen-4",
    "provider-4/flux-schnell",
    "provider-5/dall-e-2",
    "provider-4/qwen-image",
]


def family_for_model(model: str) -> ProviderFamily:
    """Infer the provider family that serves a model identifier.

    Args:
        model: Model identifier as selected by the caller.

    Returns:
        ProviderFamily for the model.

    Examples:
        >>> family_for_model("gemini-2.5-flash")
        <ProviderFamily.GOOGLE: 'google'>
        >>> family_for_model("qwen/qwen3-4b:free")
        <ProviderFamily.OPENROUTER: 'openrouter'>
    """
    if model.startswith("provider-"):
        return ProviderFamily.A4F
    if model.startswith(("gemini-", "imagen-")):
        return ProviderFamily.GOOGLE
    return ProviderFamily.OPENROUTER


class Settings(BaseSettings):
    """Application settings.

    Attributes:
        DATABASE_URL: Database connection string (SQLite or PostgreSQL)
        GEMINI_API_KEY..GEMINI_API_KEY_5: Google Gen AI credential slots
        OPENROUTER_API_KEY..OPENROUTER_API_KEY_5: OpenRouter credential slots
        A4F_API_KEY..A4F_API_KEY_5: A4F credential slots
        GOOGLE_SEARCH_API_KEY..._4 / GOOGLE_CX_ID..._4: search collaborator pairs
        PROVIDER_TIMEOUT: Per-call timeout for provider requests
        CREDENTIAL_ROTATION: Key ordering policy for every pool
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./chatforge.db",
        description="Database connection string",
    )

    # Google Gen AI credentials
    GEMINI_API_KEY: str | None = None
    GEMINI_API_KEY_2: str | None = None
    GEMINI_API_KEY_3: str | None = None
    GEMINI_API_KEY_4: str | None = None
    GEMINI_API_KEY_5: str | None = None

    # OpenRouter credentials
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_API_KEY_2: str | None = None
    OPENROUTER_API_KEY_3: str | None = None
    OPENROUTER_API_KEY_4: str | None = None
    OPENROUTER_API_KEY_5: str | None = None

    # A4F credentials
    A4F_API_KEY: str | None = None
    A4F_API_KEY_2: str | None = None
    A4F_API_KEY_3: str | None = None
    A4F_API_KEY_4: str | None = None
    A4F_API_KEY_5: str | None = None

    # Google Custom Search (key, cx) pairs
    GOOGLE_SEARCH_API_KEY: str | None = None
    GOOGLE_SEARCH_API_KEY_2: str | None = None
    GOOGLE_SEARCH_API_KEY_3: str | None = None
    GOOGLE_SEARCH_API_KEY_4: str | None = None
    GOOGLE_CX_ID: str | None = None
    GOOGLE_CX_ID_2: str | None = None
    GOOGLE_CX_ID_3: str | None = None
    GOOGLE_CX_ID_4: str | None = None

    CREDENTIAL_ROTATION: RotationMode = Field(
        default=RotationMode.SEQUENTIAL,
        description="Credential ordering policy (sequential or round_robin)",
    )

    # Timeouts (seconds)
    PROVIDER_TIMEOUT: float = Field(default=60.0, gt=0, description="Provider call timeout")
    SEARCH_TIMEOUT: float = Field(default=30.0, gt=0, description="Per-query search timeout")
    ENRICH_TIMEOUT: float = Field(default=12.0, gt=0, description="Per-page enrichment timeout")
    STORAGE_TIMEOUT: float = Field(default=30.0, gt=0, description="Object storage timeout")

    # Usage quota (free plan; pro is unlimited)
    FREE_DAILY_IMAGE_LIMIT: int = Field(default=10, ge=0)
    FREE_MONTHLY_RESEARCH_LIMIT: int = Field(default=5, ge=0)

    # Research pipeline
    RESEARCH_MAX_QUERIES: int = Field(default=5, ge=1, le=15)
    RESEARCH_MAX_SOURCES: int = Field(default=20, ge=1)
    RESEARCH_ENRICH_COUNT: int = Field(default=8, ge=0)
    RESEARCH_EXCERPT_CHARS: int = Field(default=8000, ge=0)

    # Document summary cache
    SUMMARY_CACHE_SIZE: int = Field(default=256, ge=1)
    SUMMARY_CACHE_TTL: int = Field(default=3600, ge=1, description="Seconds")

    # Object storage
    STORAGE_ROOT: str = Field(default="./output", description="Local object storage root")
    STORAGE_PUBLIC_URL: str = Field(default="/files", description="Public URL prefix")

    # Image generation
    DEFAULT_IMAGE_MODEL: str = Field(default="provider-4/flux-schnell")
    IMAGE_SOURCE_SIZE: int = Field(default=1024, description="Native square output size")

    BRAND_NAME: str = Field(default="ChatForge", description="Name used in identity answers")

    # Application Settings
    ENVIRONMENT: Environment = Field(default=Environment.DEVELOPMENT)
    DEBUG: bool = Field(default=False)

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        valid_prefixes = ("sqlite", "postgresql", "postgres")
        if not any(v.startswith(prefix) for prefix in valid_prefixes):
            raise ValueError(
                f"DATABASE_URL must start with one of: {valid_prefixes}"
            )
        return v

    @field_validator("DEFAULT_IMAGE_MODEL")
    @classmethod
    def validate_image_model(cls, v: str) -> str:
        """Default image model must be one the image family serves."""
        if v not in IMAGE_MODELS:
            raise ValueError(f"DEFAULT_IMAGE_MODEL must be one of: {IMAGE_MODELS}")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    def _slots(self, prefix: str, count: int) -> list[str | None]:
        names = [prefix] + [f"{prefix}_{i}" for i in range(2, count + 1)]
        return [getattr(self, name, None) for name in names]

    def credentials_for(self, family: ProviderFamily) -> list[str]:
        """Ordered, non-blank credentials configured for a family.

        Args:
            family: The provider family.

        Returns:
            Secrets in slot order with empty slots removed.
        """
        prefix = CREDENTIAL_ENV_PREFIX[family]
        return [
            value.strip()
            for value in self._slots(prefix, CREDENTIAL_SLOTS)
            if value and value.strip()
        ]

    def has_provider(self, family: ProviderFamily) -> bool:
        """Check if at least one credential is configured for a family."""
        return bool(self.credentials_for(family))

    def search_credentials(self) -> list[tuple[str, str]]:
        """(api_key, cx_id) pairs for the search collaborator.

        A key without its own cx id reuses the last configured cx id.
        """
        keys = [k.strip() for k in self._slots("GOOGLE_SEARCH_API_KEY", 4) if k and k.strip()]
        cx_ids = [c.strip() for c in self._slots("GOOGLE_CX_ID", 4) if c and c.strip()]
        if not keys or not cx_ids:
            return []
        return [(key, cx_ids[min(i, len(cx_ids) - 1)]) for i, key in enumerate(keys)]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: The application settings.
    """
    return Settings()


# Global settings instance for convenience
settings = get_settings()
