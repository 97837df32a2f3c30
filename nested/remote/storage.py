"""Object storage for avatars and project icons.

Files are checked against an allowed MIME set and a per-kind size
ceiling before any upload is attempted.
"""

from __future__ import annotations

import base64
import mimetypes
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from nested.exceptions import AssetValidationError
from nested.settings import Settings, get_settings

ALLOWED_MIME_TYPES: frozenset[str] = frozenset(
    {"image/jpeg", "image/png", "image/gif", "image/webp"}
)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class AssetKind(str, Enum):
    AVATAR = "avatar"
    PROJECT_ICON = "project_icon"


@dataclass(frozen=True)
class Asset:
    """An image file held in memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        suffix = Path(self.filename).suffix.lstrip(".").lower()
        return suffix or _EXTENSIONS.get(self.content_type, "bin")

    @classmethod
    def from_path(cls, path: Path, content_type: str | None = None) -> Asset:
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=content_type or guessed or "application/octet-stream",
            data=path.read_bytes(),
        )


def max_bytes_for(kind: AssetKind, settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    if kind is AssetKind.AVATAR:
        return settings.avatar_max_bytes
    return settings.project_icon_max_bytes


def bucket_for(kind: AssetKind, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    if kind is AssetKind.AVATAR:
        return settings.avatar_bucket
    return settings.project_icon_bucket


def validate_asset(asset: Asset | None, max_bytes: int) -> None:
    """Reject files outside the allowed MIME set or over the ceiling.

    A file of exactly ``max_bytes`` is accepted.

    Raises:
        AssetValidationError: kind is ``missing``, ``invalid_type`` or ``too_large``
    """
    if asset is None or not asset.data:
        raise AssetValidationError("No file provided", kind="missing")
    if asset.content_type not in ALLOWED_MIME_TYPES:
        raise AssetValidationError(
            "Invalid file type. Please use JPG, PNG, GIF, or WebP.",
            kind="invalid_type",
        )
    if asset.size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise AssetValidationError(
            f"File too large. Maximum size is {limit_mb:g}MB.",
            kind="too_large",
        )


def to_data_uri(asset: Asset) -> str:
    """Inline encoding used when the asset can only be kept locally."""
    encoded = base64.b64encode(asset.data).decode("ascii")
    return f"data:{asset.content_type};base64,{encoded}"


def is_data_uri(value: object) -> bool:
    return isinstance(value, str) and value.startswith("data:")


class StorageMixin:
    """Mixin providing object storage operations."""

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    async def upload_asset(
        self,
        bucket: str,
        owner_key: str,
        asset: Asset,
        *,
        max_bytes: int,
        prefix: str = "",
        access_token: str | None = None,
    ) -> str:
        """Upload an image and return its public URL.

        Raises:
            AssetValidationError: Before any I/O, if the file is not acceptable
        """
        validate_asset(asset, max_bytes)

        path = f"{prefix}{owner_key}-{int(time.time() * 1000)}.{asset.extension}"
        await self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{path}",
            content=asset.data,
            headers={
                "Content-Type": asset.content_type,
                "cache-control": "3600",
                "x-upsert": "true",
            },
            access_token=access_token,
            operation=f"storage.{bucket}.upload",
        )
        return self.public_url(bucket, path)

    async def delete_asset(
        self,
        bucket: str,
        path: str,
        *,
        access_token: str | None = None,
    ) -> None:
        await self._request(
            "DELETE",
            f"/storage/v1/object/{bucket}",
            json={"prefixes": [path]},
            access_token=access_token,
            operation=f"storage.{bucket}.delete",
        )
