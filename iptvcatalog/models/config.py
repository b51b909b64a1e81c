"""Pydantic models for application configuration."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Options(BaseModel):
    """Application options."""
    model_config = ConfigDict(extra="allow")

    # None = derive from the incoming request scheme
    secure_context: Optional[bool] = None
    fetch_via_proxy: bool = False
    public_origin: str = ""
    fetch_timeout: float = 60.0
    debounce_ms: int = 300
    history_limit: int = 50


class AppConfig(BaseModel):
    """Root application configuration."""
    model_config = ConfigDict(extra="allow")

    options: Options = Options()
