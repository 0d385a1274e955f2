"""Application configuration using pydantic-settings."""

import warnings
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


# Find .env file: check backend dir first, then project root
_BACKEND_DIR = Path(__file__).parent.parent
_PROJECT_ROOT = _BACKEND_DIR.parent
_ENV_FILE = _BACKEND_DIR / ".env" if (_BACKEND_DIR / ".env").exists() else _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Timeline settings loaded from environment variables.

    Coding-system identifiers decide how raw records are classified, so they
    must match the feed the records come from. Defaults follow the public
    FHIR terminology URLs.
    """

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="TIMELINE_",
        extra="ignore",
    )

    # Coding systems
    lab_coding_system: str = "http://loinc.org"
    medication_coding_system: str = "http://www.nlm.nih.gov/research/umls/rxnorm"
    microbio_coding_system: str = "http://terminology.example.org/fhir/CodeSystem/microbiology"

    # The only interpretation value-set decoded by the parser
    interpretation_valueset_url: str = "http://hl7.org/fhir/ValueSet/observation-interpretation"

    # Series layout
    discrete_series_y: float = 10.0
    step_series_spacing: float = 10.0

    # Administration cache; None means entries never expire
    administration_cache_ttl_seconds: float | None = None

    def model_post_init(self, __context) -> None:
        """Warn about settings that silently disable behavior."""
        if (
            self.administration_cache_ttl_seconds is not None
            and self.administration_cache_ttl_seconds <= 0
        ):
            warnings.warn(
                "TIMELINE_ADMINISTRATION_CACHE_TTL_SECONDS <= 0 disables administration caching.",
                UserWarning,
                stacklevel=2,
            )
        if self.step_series_spacing <= 0:
            warnings.warn(
                "TIMELINE_STEP_SERIES_SPACING must be positive; step series will overlap.",
                UserWarning,
                stacklevel=2,
            )


settings = Settings()
