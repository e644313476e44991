"""Health check response."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["ok"] = Field(default="ok")
    environment: str = Field(description="APP_ENV of the running instance")
    database: Literal["connected", "disconnected"] | None = Field(
        default=None, description="Whether the account store answered a trivial query"
    )
