"""Avatar and project icon uploads with inline fallback.

Files are validated locally first. An upload failure (or a missing
backend) falls back to a data URI, which is only ever produced for
files that already passed the size ceiling.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nested.exceptions import AssetValidationError, RemoteStoreError
from nested.persistence.results import AssetResult, AssetStatus
from nested.remote.storage import (
    Asset,
    AssetKind,
    bucket_for,
    max_bytes_for,
    to_data_uri,
    validate_asset,
)
from nested.session import Session
from nested.settings import Settings, get_settings

if TYPE_CHECKING:
    from nested.remote import RemoteStoreClient

logger = logging.getLogger(__name__)

_PREFIXES = {
    AssetKind.AVATAR: "",
    AssetKind.PROJECT_ICON: "project-",
}


class AssetCoordinator:
    """Upload images to object storage, or inline them when that fails."""

    def __init__(
        self,
        remote: RemoteStoreClient | None,
        settings: Settings | None = None,
    ) -> None:
        self.remote = remote
        self.settings = settings or get_settings()

    async def save_asset(
        self,
        session: Session,
        owner_key: str,
        asset: Asset | None,
        kind: AssetKind,
    ) -> AssetResult:
        """Store an image and return where it can be found.

        Returns:
            UPLOADED with the public URL, INLINED with a data URI when the
            backend is unavailable, or REJECTED without any I/O
        """
        max_bytes = max_bytes_for(kind, self.settings)
        try:
            validate_asset(asset, max_bytes)
        except AssetValidationError as e:
            return AssetResult(AssetStatus.REJECTED, error_kind=e.kind, message=str(e))

        if self.remote is not None:
            try:
                url = await self.remote.upload_asset(
                    bucket_for(kind, self.settings),
                    owner_key,
                    asset,
                    max_bytes=max_bytes,
                    prefix=_PREFIXES[kind],
                    access_token=session.access_token,
                )
            except RemoteStoreError as e:
                logger.warning("%s upload for %s failed, inlining: %s", kind.value, owner_key, e)
            else:
                return AssetResult(AssetStatus.UPLOADED, url=url)

        return AssetResult(AssetStatus.INLINED, url=to_data_uri(asset))
