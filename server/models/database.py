"""SQLModel database models and tables."""

from datetime import datetime, timezone
from typing import Optional, Literal
from pydantic import field_validator
from sqlmodel import SQLModel, Field, Column, DateTime
from sqlalchemy import func


JobType = Literal[
    "Full-time",
    "Part-time",
    "Contract",
    "Paid Internship",
    "Unpaid Internship",
    "Volunteer",
    "Job Shadow",
]
ExperienceLevel = Literal["Entry", "Mid", "Senior"]
WorkplaceType = Literal["On-site", "Hybrid", "Remote"]
PayFrequency = Literal["Per Year", "Per Month", "Per Hour"]


class Job(SQLModel, table=True):
    """Job posting."""

    __tablename__ = "jobs"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    description: str = Field(max_length=10000)
    location: str = Field(index=True, max_length=255)
    industry: str = Field(index=True, max_length=255)
    job_type: str = Field(max_length=50)
    experience_level: str = Field(max_length=50)
    workplace_type: str = Field(max_length=50)
    salary_min: float = Field(ge=0)
    salary_max: float = Field(ge=0)
    frequency: str = Field(max_length=50)
    company_name: str = Field(max_length=255)
    posted_by: str = Field(index=True, max_length=255)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )


class TextContent(SQLModel, table=True):
    """Editable text block shown by a frontend component."""

    __tablename__ = "text_contents"

    id: Optional[int] = Field(default=None, primary_key=True)
    component: str = Field(index=True, max_length=255)
    content: str = Field(max_length=100000)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )


# ============================================================================
# Request payloads
# ============================================================================

class JobCreate(SQLModel):
    title: str
    description: str
    location: str
    industry: str
    job_type: JobType
    experience_level: ExperienceLevel
    workplace_type: WorkplaceType
    salary_min: float = Field(ge=0)
    salary_max: float = Field(ge=0)
    frequency: PayFrequency
    company_name: str
    posted_by: str


class JobUpdate(SQLModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None
    job_type: Optional[JobType] = None
    experience_level: Optional[ExperienceLevel] = None
    workplace_type: Optional[WorkplaceType] = None
    salary_min: Optional[float] = Field(default=None, ge=0)
    salary_max: Optional[float] = Field(default=None, ge=0)
    frequency: Optional[PayFrequency] = None
    company_name: Optional[str] = None

    @field_validator("*")
    @classmethod
    def reject_null(cls, v):
        """Fields may be omitted but not cleared; every job column is NOT NULL."""
        if v is None:
            raise ValueError("field cannot be null")
        return v


class TextCreate(SQLModel):
    component: str
    content: str


class TextUpdate(SQLModel):
    component: Optional[str] = None
    content: Optional[str] = None

    @field_validator("*")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v
