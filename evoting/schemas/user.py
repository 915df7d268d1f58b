from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AdminUserCreate(BaseModel):
    """Payload for creating an election administrator"""
    model_config = ConfigDict(populate_by_name=True)

    nim: str
    email: EmailStr
    name: str
    password: str = Field(min_length=1)
    is_admin: Literal[True] = Field(alias="isAdmin")


class NonAdminUserCreate(BaseModel):
    """Payload for creating a voter"""
    model_config = ConfigDict(populate_by_name=True)

    nim: str
    email: EmailStr
    name: str
    year_class: int = Field(alias="yearClass")
    is_admin: Literal[False] = Field(default=False, alias="isAdmin")


# Resolved before reaching the service: is_admin picks the variant
UserCreate = Union[AdminUserCreate, NonAdminUserCreate]


class VoteUpdate(BaseModel):
    voted: bool


# Read projections
# -----------------------------
# Default reads never carry password or is_admin; login lookups use
# UserCredentials explicitly.

class AdminResponse(BaseModel):
    id: int
    nim: Optional[str]
    email: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class UserResponse(AdminResponse):
    year_class: Optional[int]
    voted: bool


class UserWithRole(UserResponse):
    is_admin: bool


class UserCredentials(UserWithRole):
    password: Optional[str]


class UserStats(BaseModel):
    non_admin: int
    admin: int


class Token(BaseModel):
    access_token: str
    token_type: str
