"""
Configuration settings for the radioactive decay fit.
Uses pydantic-settings for type-safe configuration management.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class FitSettings(BaseSettings):
    """Minimizer and starting-point configuration."""
    model_config = SettingsConfigDict(env_prefix="FIT_")

    # Minimizer selection
    minimizer: str = Field(default="scipy", description="Registered minimizer name")
    algorithm: str = Field(default="BFGS", description="Algorithm (BFGS, L-BFGS-B)")

    # Variables: initial guesses and step sizes
    lambda_initial: float = Field(default=0.2, description="Initial guess for the decay constant")
    lambda_step: float = Field(default=0.01, gt=0, description="Step size for the decay constant")
    a0_initial: float = Field(default=900.0, description="Initial guess for the initial activity")
    a0_step: float = Field(default=10.0, gt=0, description="Step size for the initial activity")

    # Convergence control
    strategy: int = Field(default=2, ge=0, le=2, description="Error estimation thoroughness (0, 1, 2)")
    max_function_calls: int = Field(default=10000, gt=0, description="Maximum objective evaluations")
    max_iterations: int = Field(default=10000, gt=0, description="Maximum minimizer iterations")
    tolerance: float = Field(default=1e-6, gt=0, description="Convergence tolerance")
    error_def: float = Field(
        default=1.0,
        gt=0,
        description="Objective increase defining one standard deviation (1 for chi-square)"
    )


class Settings(BaseSettings):
    """Main settings class combining all configurations."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Project info
    project_name: str = Field(
        default="Radioactive Decay Fit",
        description="Project name"
    )
    version: str = Field(default="1.0.0", description="Project version")

    # Sub-settings
    fit: FitSettings = Field(default_factory=FitSettings)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export settings instance
settings = get_settings()
