"""Engine settings loaded from environment variables or .env."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from surveylens.analysis.models import EngineOptions


def _find_env_files() -> list[Path]:
    """.env files for pydantic-settings, lowest priority first.

    The checkout root (beside the package) comes first, then the nearest
    .env found walking up from the working directory.
    """
    candidates: list[Path] = []

    pkg_env = Path(__file__).resolve().parent.parent / ".env"
    if pkg_env.is_file():
        candidates.append(pkg_env)

    cwd = Path.cwd().resolve()
    for parent in [cwd, *cwd.parents]:
        env_path = parent / ".env"
        if env_path.is_file() and env_path not in candidates:
            candidates.append(env_path)
            break  # stop at first match going upward

    return candidates


class SurveylensSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SURVEYLENS_",
        env_file=_find_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Significance (Pearson chi-square, df = 1, p < 0.05)
    significance_threshold: float = 3.841

    # Options pre-selected for display
    top_n_default: int = Field(default=8, ge=1)

    # Gated follow-up rating bands (inclusive)
    positive_band: tuple[float, float] = (4.0, 5.0)
    negative_band: tuple[float, float] = (1.0, 3.0)

    # HTTP surface memo cache
    cache_size: int = Field(default=256, ge=0)

    @model_validator(mode="after")
    def _check_bands(self) -> SurveylensSettings:
        for name in ("positive_band", "negative_band"):
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"{name} lower bound {low} exceeds upper bound {high}")
        return self

    def engine_options(self) -> EngineOptions:
        """Freeze the analysis-relevant settings for one engine call."""
        from surveylens.analysis.models import EngineOptions

        return EngineOptions(
            threshold=self.significance_threshold,
            top_n=self.top_n_default,
            positive_band=self.positive_band,
            negative_band=self.negative_band,
        )


def load_settings(**overrides: object) -> SurveylensSettings:
    """Load settings with optional CLI overrides.

    ``None`` overrides are dropped so unset CLI options fall through to the
    environment.
    """
    clean = {k: v for k, v in overrides.items() if v is not None}
    return SurveylensSettings(**clean)  # type: ignore[arg-type]
