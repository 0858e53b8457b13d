"""
Pydantic configuration schema for CraftDesk.

This module defines all configuration models with validation.
"""

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Install Configuration
# =============================================================================


class InstallConfig(BaseModel):
    """Where crafts and project files live."""

    model_config = ConfigDict(extra="allow")

    path: str = ".claude"
    lockfile: str = "craftdesk.lock"
    manifest: str = "craftdesk.json"


# =============================================================================
# Git Configuration
# =============================================================================


class GitConfig(BaseModel):
    """Git subprocess limits."""

    model_config = ConfigDict(extra="allow")

    ls_remote_timeout: float = Field(default=15.0, gt=0)
    clone_timeout: float = Field(default=120.0, gt=0)
    clone_depth: int = Field(default=1, ge=1)


# =============================================================================
# Registry Configuration
# =============================================================================


class RegistryConfig(BaseModel):
    """Registry endpoints."""

    model_config = ConfigDict(extra="allow")

    default_url: str = "https://craftdesk.ai"
    timeout: float = Field(default=30.0, gt=0)
    # Scope ("@company") to registry URL
    scopes: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# Root Configuration
# =============================================================================


class Config(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="allow")

    install: InstallConfig = Field(default_factory=InstallConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
