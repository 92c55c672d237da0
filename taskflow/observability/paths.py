from __future__ import annotations

import re


ROUTE_PLACEHOLDER = ":id"
UNKNOWN_ROUTE = "unknown"

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)
NUMERIC_SEGMENT_PATTERN = re.compile(r"/\d+(?=/|$)")


def normalize_path(path: str | None) -> str:
    """Collapse identifier segments so a path can be used as a metric label.

    `/api/tasks/42` and `/api/tasks/<uuid>` both become `/api/tasks/:id`.
    """

    if not path:
        return UNKNOWN_ROUTE

    route = UUID_PATTERN.sub(ROUTE_PLACEHOLDER, path)
    return NUMERIC_SEGMENT_PATTERN.sub(f"/{ROUTE_PLACEHOLDER}", route)
