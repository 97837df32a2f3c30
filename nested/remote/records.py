"""Table reads and writes over the REST interface."""

from typing import Any

from nested.exceptions import RemoteStoreError

RETURN_REPRESENTATION = "return=representation"


def eq(value: Any) -> str:
    """Equality filter expression."""
    if isinstance(value, bool):
        value = str(value).lower()
    return f"eq.{value}"


def in_(values: list[Any]) -> str:
    """Membership filter expression."""
    return f"in.({','.join(str(v) for v in values)})"


def ilike_any(query: str, columns: tuple[str, ...]) -> str:
    """Case-insensitive substring match on any of ``columns``, for an ``or`` filter."""
    # Characters with meaning inside an or() expression
    term = "".join(ch for ch in query if ch not in ",()*").strip()
    return "(" + ",".join(f"{col}.ilike.*{term}*" for col in columns) + ")"


def _first_row(rows: Any) -> dict[str, Any] | None:
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows


class RecordMixin:
    """Mixin providing table operations."""

    async def get(
        self,
        table: str,
        key: str,
        *,
        key_column: str = "id",
        select: str = "*",
        access_token: str | None = None,
    ) -> dict[str, Any] | None:
        """Fetch one row by key.

        Returns:
            The row, or None when no row matches
        """
        rows = await self._request(
            "GET",
            f"/rest/v1/{table}",
            params={key_column: eq(key), "select": select},
            access_token=access_token,
            operation=f"{table}.get",
        )
        return _first_row(rows)

    async def select(
        self,
        table: str,
        *,
        filters: dict[str, str] | None = None,
        select: str = "*",
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        """List rows matching filter expressions (see eq(), in_())."""
        params: dict[str, Any] = {"select": select, **(filters or {})}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        if offset:
            params["offset"] = offset

        rows = await self._request(
            "GET",
            f"/rest/v1/{table}",
            params=params,
            access_token=access_token,
            operation=f"{table}.select",
        )
        return list(rows or [])

    async def upsert(
        self,
        table: str,
        key: str,
        fields: dict[str, Any],
        *,
        key_column: str = "id",
        access_token: str | None = None,
    ) -> dict[str, Any]:
        """Insert or update the row identified by key.

        Only the supplied columns are written on conflict.
        """
        rows = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json={**fields, key_column: key},
            params={"on_conflict": key_column},
            headers={"Prefer": f"resolution=merge-duplicates,{RETURN_REPRESENTATION}"},
            access_token=access_token,
            operation=f"{table}.upsert",
        )
        row = _first_row(rows)
        if row is None:
            raise RemoteStoreError(f"{table}.upsert returned no row", f"{table}.upsert")
        return row

    async def insert(
        self,
        table: str,
        fields: dict[str, Any],
        *,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        rows = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=fields,
            headers={"Prefer": RETURN_REPRESENTATION},
            access_token=access_token,
            operation=f"{table}.insert",
        )
        row = _first_row(rows)
        if row is None:
            raise RemoteStoreError(f"{table}.insert returned no row", f"{table}.insert")
        return row

    async def update(
        self,
        table: str,
        fields: dict[str, Any],
        *,
        filters: dict[str, str],
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        rows = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            json=fields,
            params=filters,
            headers={"Prefer": RETURN_REPRESENTATION},
            access_token=access_token,
            operation=f"{table}.update",
        )
        return list(rows or [])

    async def delete(
        self,
        table: str,
        *,
        filters: dict[str, str],
        access_token: str | None = None,
    ) -> None:
        """Delete rows matching filters. An empty filter set is refused."""
        if not filters:
            raise ValueError("delete requires at least one filter")
        await self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=filters,
            access_token=access_token,
            operation=f"{table}.delete",
        )
