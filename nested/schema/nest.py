"""Nest (student community) models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

MAX_NEST_TAGS = 3


class NestUpdate(BaseModel):
    """Fields a nest write may carry; owner and member count are server-side."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    tags: list[str] | None = Field(default=None, max_length=MAX_NEST_TAGS)
    image: str | None = None
