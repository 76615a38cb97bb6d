"""Shared request/response schema helpers."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Schema exposed with camelCase names on the wire.

    Python code keeps snake_case attributes; either form is accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
        validate_default=True,
    )


def point(latitude: float | None, longitude: float | None) -> dict[str, Any] | None:
    """Build a GeoJSON point, or None when either coordinate is missing."""
    if latitude is None or longitude is None:
        return None
    return {"type": "Point", "coordinates": [longitude, latitude]}
