"""Remote update manifest model."""

import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class UpdateManifest(BaseModel):
    """Remote manifest.yaml schema.

    Only ``version`` drives the update; the remaining fields are metadata
    surfaced in logs.
    """

    version: str = Field(..., description="Latest available semantic version")
    name: Optional[str] = Field(None, description="Release name")
    date: Optional[str] = Field(None, description="Release date")
    author: Optional[str] = Field(None, description="Release author")

    @field_validator("version", "name", "date", "author", mode="before")
    @classmethod
    def coerce_yaml_scalars(cls, v):
        """YAML loads unquoted dates and numbers as non-strings."""
        if isinstance(v, datetime.date):
            return v.isoformat()
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v
