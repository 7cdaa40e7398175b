"""
House and User Models

A User belongs to at most one House at a time. Membership is a single
nullable `house_id` on the user's profile row; there is no join table.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_DISPLAY_NAME = "User"


class MembershipState(str, Enum):
    """Where the signed-in user stands with respect to houses."""
    NO_HOUSE = "no_house"
    IN_HOUSE = "in_house"


class User(BaseModel):
    """
    Application-level profile for an authenticated identity.

    `id` is the identity's opaque id from the session gateway.
    `house_id` is None when the user belongs to no house.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    email: Optional[str] = None
    display_name: Optional[str] = Field(default=None, max_length=100)
    house_id: Optional[UUID] = None
    created_at: datetime

    @property
    def name(self) -> str:
        """Display name with the same fallback used at profile creation."""
        return self.display_name or DEFAULT_DISPLAY_NAME

    @property
    def in_house(self) -> bool:
        return self.house_id is not None


class House(BaseModel):
    """
    The tenant/grouping unit. Chores, expenses and notes belong to one.

    `code` is the invite code; its uniqueness is enforced by the backend.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=12)
    created_at: datetime
    created_by: Optional[UUID] = None

    @property
    def invite_code(self) -> str:
        return self.code


class HouseCreate(BaseModel):
    """Row sent to the backend when a house is created."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    code: str
    created_by: UUID


class ProfileCreate(BaseModel):
    """Row sent to the backend when a missing profile is created."""

    id: UUID
    email: Optional[str] = None
    display_name: str = DEFAULT_DISPLAY_NAME
    house_id: Optional[UUID] = None
