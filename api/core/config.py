"""Application configuration using pydantic-settings."""

from functools import cached_property, lru_cache
from typing import Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_BACKENDS = ("browser", "vector", "remote", "pdf")
SUPPORTED_LOCALES = ("pt-BR", "en-US")
VECTOR_OUTPUTS = ("svg", "png", "pdf")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Comma-separated fallback chain, highest fidelity first.
    # The vector backend never needs an external process, so keep it last.
    # Example: "browser,remote,vector"
    render_backends: str = "browser,vector"

    # Hard budget for a single backend attempt
    render_timeout_seconds: float = 10.0

    # Simultaneous headless-browser processes across all renders in a worker
    browser_slots: int = 3

    # Worker pool size for batch rendering
    batch_concurrency: int = 4

    # Output of the vector backend: "svg" (no native deps) or "png"/"pdf" via CairoSVG
    vector_output: str = "svg"

    # Single date/time policy shared by every backend
    display_timezone: str = "America/Sao_Paulo"
    display_locale: str = "pt-BR"

    # Remote transformation service (Cloudinary-compatible URL API)
    transform_cloud_name: str = ""
    transform_base_url: str = "https://res.cloudinary.com"
    transform_base_image: str = "certificates/blank_template"

    # Logo / asset downloads; the timeout covers every retry of one fetch
    asset_fetch_timeout: float = 5.0
    asset_max_bytes: int = 5 * 1024 * 1024

    http_timeout: float = 10.0

    debug: bool = False
    enable_docs: bool = False

    @model_validator(mode="after")
    def validate_config(self) -> Self:
        if not self.backend_names:
            raise ValueError("RENDER_BACKENDS must list at least one backend.")

        unknown = [name for name in self.backend_names if name not in KNOWN_BACKENDS]
        if unknown:
            raise ValueError(
                f"Unknown render backend(s): {', '.join(unknown)}. "
                f"Choose from: {', '.join(KNOWN_BACKENDS)}."
            )

        if self.render_timeout_seconds <= 0:
            raise ValueError("RENDER_TIMEOUT_SECONDS must be positive.")
        # A logo fetch runs inside a backend attempt and must give up first
        if not 0 < self.asset_fetch_timeout < self.render_timeout_seconds:
            raise ValueError(
                "ASSET_FETCH_TIMEOUT must be positive and below RENDER_TIMEOUT_SECONDS."
            )
        if self.browser_slots < 1:
            raise ValueError("BROWSER_SLOTS must be at least 1.")
        if self.batch_concurrency < 1:
            raise ValueError("BATCH_CONCURRENCY must be at least 1.")

        if self.vector_output not in VECTOR_OUTPUTS:
            raise ValueError(
                f"VECTOR_OUTPUT must be one of: {', '.join(VECTOR_OUTPUTS)}."
            )

        if self.display_locale not in SUPPORTED_LOCALES:
            raise ValueError(
                f"DISPLAY_LOCALE must be one of: {', '.join(SUPPORTED_LOCALES)}."
            )
        try:
            ZoneInfo(self.display_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(
                f"DISPLAY_TIMEZONE '{self.display_timezone}' is not a known timezone."
            ) from e

        return self

    @cached_property
    def backend_names(self) -> list[str]:
        """Ordered backend names parsed from render_backends."""
        return [
            name.strip().lower()
            for name in self.render_backends.split(",")
            if name.strip()
        ]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this in tests to reset settings between test cases.
    After clearing, the next get_settings() call will create
    a fresh Settings instance with current environment variables.

    Example:
        def test_something(monkeypatch):
            monkeypatch.setenv("RENDER_BACKENDS", "vector")
            clear_settings_cache()
            settings = get_settings()  # Fresh instance
    """
    get_settings.cache_clear()
