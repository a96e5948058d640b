"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, stackctl.toml only contains
overrides.  A missing file means every section uses its defaults.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ResolverConfig(BaseModel):
    """[resolver] section."""

    model_config = {"frozen": True}

    max_passes: int = Field(default=10, ge=1, le=100)


class CommandConfig(BaseModel):
    """[command] section."""

    model_config = {"frozen": True}

    prog: str = "stackctl create"


class BuilderConfig(BaseModel):
    """[builder] section."""

    model_config = {"frozen": True}

    base_url: str = "https://stackctl.dev/new"


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    local_dir: str = ".stackctl/plugins"
