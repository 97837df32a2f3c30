"""How each record type maps onto the remote table and the local cache.

A binding names the table, the cache namespace and layout, the field
normalizer run before any I/O, and who may keep a cached copy.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from nested.cache import PROFILE_NAMESPACE, PROJECTS_NAMESPACE, user_key
from nested.persistence.results import FieldError
from nested.schema import ProfileUpdate, ProjectUpdate
from nested.session import Session
from nested.validation import (
    email_error_message,
    normalize_username,
    username_error_message,
    validate_edu_email,
    validate_username_format,
)

Normalizer = Callable[[dict[str, Any]], dict[str, Any] | FieldError]


@dataclass(frozen=True)
class RecordBinding:
    """Storage layout for one record type.

    Attributes:
        table: Remote table name
        namespace: Cache namespace; the user id is appended to form the key
        normalize: Validates write fields, returning cleaned fields or a FieldError
        owner_field: Record column naming the owning user id
        collection: When True the cache holds a list of records per user,
            otherwise a single record
    """

    table: str
    namespace: str
    normalize: Normalizer
    owner_field: str = "id"
    collection: bool = False

    def cache_key(self, session: Session) -> str:
        return user_key(self.namespace, session.user_id or "")

    def owns(self, session: Session, record: dict[str, Any] | None) -> bool:
        if not session.is_authenticated or not isinstance(record, dict):
            return False
        return str(record.get(self.owner_field)) == session.user_id


def validate_model(model: type[BaseModel], fields: dict[str, Any]) -> dict[str, Any] | FieldError:
    """Parse fields against model; the first schema error becomes a FieldError."""
    try:
        parsed = model.model_validate(fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc") or ()
        return FieldError(
            kind=first["type"],
            field=str(loc[0]) if loc else None,
            message=first.get("msg"),
        )
    return parsed.model_dump(mode="json", exclude_unset=True)


def normalize_profile_fields(fields: dict[str, Any]) -> dict[str, Any] | FieldError:
    """Validate a profile write.

    Username and email rules run first, then the schema constraints
    (bio length, skill count, enumerations).
    """
    if "username" in fields:
        error = validate_username_format(fields["username"])
        if error is not None:
            return FieldError(error.value, "username", username_error_message(error))

    if fields.get("email") is not None:
        result = validate_edu_email(fields["email"])
        if not result.valid:
            return FieldError(
                result.error_kind.value,
                "email",
                email_error_message(fields["email"], result.error_kind),
            )

    cleaned = validate_model(ProfileUpdate, fields)
    if isinstance(cleaned, FieldError):
        return cleaned

    if cleaned.get("username"):
        cleaned["username"] = normalize_username(cleaned["username"])
    if cleaned.get("email"):
        cleaned["email"] = cleaned["email"].strip().lower()
    return cleaned


def normalize_project_fields(fields: dict[str, Any]) -> dict[str, Any] | FieldError:
    return validate_model(ProjectUpdate, fields)


PROFILE_BINDING = RecordBinding(
    table="profiles",
    namespace=PROFILE_NAMESPACE,
    normalize=normalize_profile_fields,
    owner_field="id",
)

PROJECT_BINDING = RecordBinding(
    table="projects",
    namespace=PROJECTS_NAMESPACE,
    normalize=normalize_project_fields,
    owner_field="owner_id",
    collection=True,
)
