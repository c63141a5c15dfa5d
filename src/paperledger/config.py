"""Configuration management using pydantic-settings."""

import tomllib
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE = "~/.local/share/paperledger"
DEFAULT_TENANT = "default"
CONFIG_PATH = Path("~/.config/paperledger/config.toml").expanduser()


class LLMProvider(str, Enum):
    """Available document-understanding providers."""

    OPENAI = "openai"
    OLLAMA = "ollama"
    CLAUDE_API = "claude-api"


class LLMConfig(BaseSettings):
    """Document-understanding provider configuration."""

    model_config = SettingsConfigDict(env_prefix="PAPERLEDGER_LLM_")

    provider: LLMProvider = LLMProvider.OPENAI
    model: str = "gpt-4o"
    base_url: str = "https://api.openai.com/v1"
    api_key: str | None = None
    max_tokens: int = 2000
    timeout: float = 60.0

    @field_validator("base_url")
    @classmethod
    def check_scheme(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Invalid base_url scheme: {parsed.scheme}")
        return v.rstrip("/")


class StorageConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PAPERLEDGER_STORAGE_")

    base: Path = Path(DEFAULT_BASE)
    tenant: str = DEFAULT_TENANT

    @field_validator("base", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser()

    @property
    def content(self) -> Path:
        return self.base / "content"

    @property
    def records(self) -> Path:
        return self.base / "records"


class ExtractionConfig(BaseSettings):
    """Acceptance rules applied to raw extraction output."""

    model_config = SettingsConfigDict(env_prefix="PAPERLEDGER_EXTRACTION_")

    required_keys: list[str] = ["vendor_name", "invoice_number"]
    numeric_keys: list[str] = ["total_amount", "subtotal", "tax_amount"]
    preview_length: int = 1000


class ValidationConfig(BaseSettings):
    """Tolerances and thresholds for invoice validation."""

    model_config = SettingsConfigDict(env_prefix="PAPERLEDGER_VALIDATION_")

    amount_tolerance: float = 0.01
    minor_difference_tolerance: float = 0.001
    high_tax_rate: float = 25
    high_unit_price: float = 10000
    high_quantity: float = 10000


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PAPERLEDGER_")

    llm: LLMConfig = LLMConfig()
    storage: StorageConfig = StorageConfig()
    extraction: ExtractionConfig = ExtractionConfig()
    validation: ValidationConfig = ValidationConfig()


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from TOML file, falling back to defaults."""
    path = config_path or CONFIG_PATH

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)

        llm = LLMConfig(**data.get("llm", {}))
        storage = StorageConfig(**data.get("storage", {}))
        extraction = ExtractionConfig(**data.get("extraction", {}))
        validation = ValidationConfig(**data.get("validation", {}))
        return Settings(
            llm=llm, storage=storage, extraction=extraction, validation=validation
        )

    return Settings()
