"""Control catalog data models."""

from __future__ import annotations

from pydantic import BaseModel


class Control(BaseModel):
    """A single control returned by the control catalog."""

    id: str
    family: str
    title: str = ""
