"""Record models for profiles, projects, events and nests."""

from nested.schema.event import Event, EventUpdate
from nested.schema.nest import MAX_NEST_TAGS, NestUpdate
from nested.schema.profile import (
    UNIVERSITIES,
    LookingFor,
    Profile,
    ProfileLinks,
    ProfileProjectEntry,
    ProfileUpdate,
)
from nested.schema.project import (
    Commitment,
    MemberStatus,
    Project,
    ProjectCategory,
    ProjectRole,
    ProjectStage,
    ProjectUpdate,
    TeamMember,
    derive_spots_left,
)

__all__ = [
    "MAX_NEST_TAGS",
    "UNIVERSITIES",
    "Commitment",
    "Event",
    "EventUpdate",
    "LookingFor",
    "MemberStatus",
    "NestUpdate",
    "Profile",
    "ProfileLinks",
    "ProfileProjectEntry",
    "ProfileUpdate",
    "Project",
    "ProjectCategory",
    "ProjectRole",
    "ProjectStage",
    "ProjectUpdate",
    "TeamMember",
    "derive_spots_left",
]
