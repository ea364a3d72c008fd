"""
Pydantic configuration schema for Skillforge.

This module defines all configuration models with validation.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

CURRENT_CONFIG_VERSION = 1

# =============================================================================
# Search Configuration
# =============================================================================


class SearchConfig(BaseModel):
    """Search index configuration."""

    model_config = ConfigDict(extra="allow")

    tokenizer: Literal["ascii", "cjk"] = Field(
        default="ascii",
        description="ascii uses word boundaries with stemming; cjk segments ideographs",
    )
    formats: list[str] = Field(
        default_factory=lambda: [".md", ".txt"],
        description="File extensions to index",
    )

    @field_validator("tokenizer", mode="before")
    @classmethod
    def _lowercase_tokenizer(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value


# =============================================================================
# Build Configuration
# =============================================================================


class BuildConfig(BaseModel):
    """Stub generation limits."""

    model_config = ConfigDict(extra="allow")

    max_stub_lines: int = Field(default=100, ge=20)
    max_section_entries: int = Field(default=15, ge=1)
    max_reference_entries: int = Field(default=15, ge=1)
    max_description_length: int = Field(default=120, ge=10)


# =============================================================================
# Deploy Configuration
# =============================================================================


class DeployConfig(BaseModel):
    """Deployment targets configuration."""

    model_config = ConfigDict(extra="allow")

    default_targets: list[str] = Field(default_factory=lambda: ["claude"])
    targets: dict[str, str] = Field(
        default_factory=dict,
        description="Agent id to skills directory template ({home}, {project}, {base})",
    )
    max_workers: int = Field(default=1, ge=1, description="Targets provisioned in parallel")

    @field_validator("default_targets", mode="before")
    @classmethod
    def _split_targets(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


# =============================================================================
# Analytics Configuration
# =============================================================================


class AnalyticsConfig(BaseModel):
    """Access logging configuration."""

    model_config = ConfigDict(extra="allow")

    enable: bool = True
    fallback_stale_hours: int = Field(default=1, ge=0)


# =============================================================================
# Root Configuration Model
# =============================================================================


class Config(BaseModel):
    """
    Root configuration model for Skillforge.

    Loaded from the global config file, the project config file, and
    environment variables, merged in order of priority. The resolved value
    is passed explicitly to every component that needs it.
    """

    model_config = ConfigDict(extra="allow")

    version: int = CURRENT_CONFIG_VERSION
    search: SearchConfig = Field(default_factory=SearchConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
