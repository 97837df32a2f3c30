"""Profile, project, event and nest operations."""

from nested.services.events import EventService
from nested.services.nests import NestService
from nested.services.profiles import Availability, EmailCheck, ProfileService, UsernameCheck
from nested.services.projects import Membership, ProjectService, approved_members_only

__all__ = [
    "Availability",
    "EmailCheck",
    "EventService",
    "Membership",
    "NestService",
    "ProfileService",
    "ProjectService",
    "UsernameCheck",
    "approved_members_only",
]
