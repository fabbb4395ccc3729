from __future__ import annotations

from typing import Any, Sequence

UNNAMED_AREA = "Unnamed area"

# Boundary datasets disagree on naming; first non-blank match wins.
DEFAULT_NAME_KEYS: tuple[str, ...] = (
    "GSA_NAME",
    "COMMUNITY",
    "COMMUNITY_NAME",
    "community_name",
    "NAME",
    "name",
    "label",
    "LABEL",
)


def resolve_area_name(
    props: Any, name_keys: Sequence[str] | None = None
) -> str:
    if not props or not isinstance(props, dict):
        return UNNAMED_AREA

    for key in name_keys or DEFAULT_NAME_KEYS:
        v = props.get(key)
        if isinstance(v, str) and v.strip():
            return v.strip()

    return UNNAMED_AREA
