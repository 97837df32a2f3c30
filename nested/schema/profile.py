"""Profile models.

``Profile`` is the full stored record. ``ProfileUpdate`` is the partial
shape accepted by writes: every field optional, unknown keys rejected.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNIVERSITIES: tuple[str, ...] = (
    "New York University (NYU)",
    "Columbia University",
    "Pace University",
    "Parsons School of Design",
    "Pratt Institute",
    "Fordham University",
    "The New School",
    "Baruch College",
    "City College of New York (CCNY)",
    "Brooklyn College",
    "Hunter College",
    "Queens College",
    "NYC College of Technology (City Tech)",
    "John Jay College",
    "Other NYC school",
)

MAX_BIO_LENGTH = 160
MAX_SKILLS = 7
MAX_PROJECT_DESCRIPTION_LENGTH = 120


class LookingFor(str, Enum):
    """What a student is on Nested for."""

    JOIN_PROJECT = "join-project"
    FIND_COFOUNDER = "find-cofounder"


class ProfileLinks(BaseModel):
    """External links shown on a profile."""

    github: str | None = None
    portfolio: str | None = None
    linkedin: str | None = None
    discord: str | None = None


class ProfileProjectEntry(BaseModel):
    """A past project listed on a profile."""

    name: str = Field(..., min_length=1)
    description: str | None = Field(default=None, max_length=MAX_PROJECT_DESCRIPTION_LENGTH)
    link: str | None = None
    role: str | None = None


class ProfileUpdate(BaseModel):
    """Fields a profile write may carry."""

    model_config = ConfigDict(extra="forbid")

    username: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    university: str | None = None
    bio: str | None = Field(default=None, max_length=MAX_BIO_LENGTH)
    fields: list[str] | None = None
    looking_for: list[LookingFor] | None = None
    skills: list[str] | None = Field(default=None, max_length=MAX_SKILLS)
    projects: list[ProfileProjectEntry] | None = None
    avatar: str | None = None
    links: ProfileLinks | None = None
    onboarding_completed: bool | None = None


class Profile(BaseModel):
    """A student profile as stored remotely and in the cache."""

    model_config = ConfigDict(extra="allow")

    id: str
    username: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    university: str | None = None
    bio: str | None = Field(default=None, max_length=MAX_BIO_LENGTH)
    fields: list[str] = Field(default_factory=list)
    looking_for: list[LookingFor] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list, max_length=MAX_SKILLS)
    projects: list[ProfileProjectEntry] = Field(default_factory=list)
    avatar: str | None = None
    links: ProfileLinks = Field(default_factory=ProfileLinks)
    onboarding_completed: bool = False

    @field_validator("fields", "looking_for", "skills", "projects", mode="before")
    @classmethod
    def null_list_as_empty(cls, v: Any) -> Any:
        """Rows written with partial payloads carry NULL list columns."""
        return [] if v is None else v

    @field_validator("links", mode="before")
    @classmethod
    def null_links_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("onboarding_completed", mode="before")
    @classmethod
    def null_flag_as_false(cls, v: Any) -> Any:
        return False if v is None else v

    def onboarding_gaps(self) -> list[str]:
        """Fields that must be filled before onboarding can be marked complete."""
        gaps = []
        if not (self.university or "").strip():
            gaps.append("university")
        if not self.fields:
            gaps.append("fields")
        if not self.looking_for:
            gaps.append("looking_for")
        return gaps
