from __future__ import annotations

from typing import Any

from backend.app.client.inflow import ListResult


def list_response(result: ListResult) -> dict[str, Any]:
    response: dict[str, Any] = {"data": result.data}
    if result.total_count is not None:
        response["totalCount"] = result.total_count
    return response


def pagination(skip: int | None, count: int | None) -> dict[str, int]:
    out: dict[str, int] = {}
    if skip is not None:
        out["skip"] = skip
    if count is not None:
        out["count"] = count
    return out
