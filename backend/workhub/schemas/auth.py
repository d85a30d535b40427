"""
Pydantic schemas for the /auth routes.

Wire format is camelCase; Python attributes stay snake_case.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CanonicalUserOut(CamelModel):
    id: str
    email: str
    is_admin: bool
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str
    bio: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    timezone: Optional[str] = None
    website: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None
    created_at: Optional[datetime] = None


# Request bodies accept missing fields so the service can answer 400 itself.

class TokenExchangeIn(BaseModel):
    access_token: Optional[str] = None


class LoginIn(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterIn(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ProfileUpdateIn(CamelModel):
    """Any subset of profile fields; only fields present in the body are applied."""

    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    timezone: Optional[str] = None
    website: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    github: Optional[str] = None


class TokenExchangeOut(CamelModel):
    access_token: str
    user: CanonicalUserOut


class LoginOut(CamelModel):
    message: str
    token: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class RegisterOut(CamelModel):
    message: str
    email: str
    token: Optional[str] = None
    requires_email_verification: Optional[bool] = None


class MeOut(CamelModel):
    user: CanonicalUserOut


class MeUpdateOut(CamelModel):
    user: CanonicalUserOut
    message: str
