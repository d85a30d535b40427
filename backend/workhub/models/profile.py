from sqlalchemy import Column, DateTime, String, Text, func

from workhub.core.base import Base

# Free-form attributes a user may edit on their own profile.
PROFILE_ATTRIBUTES = (
    "bio",
    "phone",
    "job_title",
    "company",
    "location",
    "timezone",
    "website",
    "linkedin",
    "twitter",
    "github",
)

# Everything a profile update request may touch.
EDITABLE_FIELDS = ("email", "first_name", "last_name") + PROFILE_ATTRIBUTES


class Profile(Base):
    __tablename__ = "profiles"

    # Identity provider subject; one row per identity, never reused.
    id = Column(String(255), primary_key=True)

    email = Column(String(255), nullable=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    bio = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    job_title = Column(String(100), nullable=True)
    company = Column(String(100), nullable=True)
    location = Column(String(100), nullable=True)
    timezone = Column(String(64), nullable=True)
    website = Column(String(255), nullable=True)
    linkedin = Column(String(255), nullable=True)
    twitter = Column(String(100), nullable=True)
    github = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
