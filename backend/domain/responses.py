"""
Response envelope helpers shared by every router.

- Success: { "success": true, "data": <payload>, "meta": {...} }
- Error:   { "success": false, "error": { "code", "message", "details" } }  (see main.py handlers)
"""
from typing import Any


def success_response(data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Wrap a payload in the success envelope.

    `meta` is omitted when empty.
    """
    response = {"success": True, "data": data}
    if meta:
        response["meta"] = meta
    return response


def paginated_response(
    items: list[Any],
    limit: int,
    offset: int = 0,
    total: int | None = None,
) -> dict[str, Any]:
    """Success envelope for one page of a list, with limit/offset/total/hasMore meta."""
    if total is None:
        total = offset + len(items)

    return success_response(
        data=items,
        meta={
            "limit": limit,
            "offset": offset,
            "total": total,
            "hasMore": (offset + limit) < total,
        },
    )
