"""Pydantic models for the local project API."""

from pydantic import BaseModel, Field


class OwnerRequest(BaseModel):
    """Identifies the signed-in owner a sync runs for."""

    owner_id: str = Field(min_length=1)


class RenameRequest(BaseModel):
    """New display name for a local project."""

    name: str = Field(min_length=1, max_length=200)
