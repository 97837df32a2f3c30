"""Project and team membership models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProjectCategory(str, Enum):
    STARTUP = "startup"
    CLASS_PROJECT = "class-project"
    SIDE_PROJECT = "side-project"
    RESEARCH = "research"


class ProjectStage(str, Enum):
    IDEA = "idea"
    MVP = "mvp"
    IN_PROGRESS = "in-progress"
    LOOKING_FOR_TEAM = "looking-for-team"


class ProjectRole(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    FULLSTACK = "fullstack"
    DESIGNER = "designer"
    DATA = "data"
    ML = "ml"
    MOBILE = "mobile"
    PM = "pm"
    MARKETING = "marketing"
    BUSINESS = "business"


class Commitment(str, Enum):
    HACKATHON = "hackathon"
    SIDE_PROJECT = "side-project"
    SERIOUS = "serious"
    STARTUP = "startup"


class MemberStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class TeamMember(BaseModel):
    """A join request or approved member of a project."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    project_id: str
    user_id: str
    name: str = "Team Member"
    school: str | None = None
    role: str | None = None
    image: str | None = None
    message: str | None = None
    status: MemberStatus = MemberStatus.PENDING


class ProjectUpdate(BaseModel):
    """Fields a project write may carry.

    ``spots_left`` and ``owner_id`` are not accepted here; the service
    derives and assigns them.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    tagline: str | None = None
    description: str | None = None
    category: ProjectCategory | None = None
    stage: ProjectStage | None = None
    icon: str | None = None
    roles: list[ProjectRole] | None = None
    skills: list[str] | None = None
    commitment: Commitment | None = None
    communication_link: str | None = None
    publish_to_discover: bool | None = None
    university: str | None = None
    author_name: str | None = None
    author_image: str | None = None


class Project(BaseModel):
    """A collaboration listing as stored remotely and in the cache."""

    model_config = ConfigDict(extra="allow")

    id: str
    owner_id: str
    name: str
    tagline: str | None = None
    description: str | None = None
    category: ProjectCategory = ProjectCategory.SIDE_PROJECT
    stage: ProjectStage | None = None
    icon: str | None = None
    roles: list[ProjectRole] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    commitment: Commitment | None = None
    communication_link: str | None = None
    publish_to_discover: bool = True
    team_members: list[TeamMember] = Field(default_factory=list)
    spots_left: int = Field(default=0, ge=0)


def derive_spots_left(roles: list | None) -> int:
    """Open spots on a project: one per role still needed."""
    return max(0, len(roles or []))
